from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from kubernetes import client

ARGS_KEY = "initcontainer_injector_args"
REGISTRY_KEY = "initcontainer_injector_registry"
IMAGE_KEY = "initcontainer_injector_image"
COMMAND_KEY = "initcontainer_injector_command"

DEFAULT_REGISTRY = "docker.io"
DEFAULT_IMAGE = "default"
DEFAULT_COMMAND = "/bin/sh,-c,echo"

INIT_CONTAINER_NAME = "injected-init"
IMAGE_TAG = "latest"

TOKEN_SEPARATOR = ","


def default_if_empty(value: str | None, default: str) -> str:
    if not value:
        return default
    return value


def split_tokens(raw: str) -> list[str]:
    """Split a comma separated annotation value.

    There is no escaping: a literal comma cannot appear inside a token.
    Tokens are not trimmed and empty tokens are kept.
    """
    return raw.split(TOKEN_SEPARATOR)


@dataclass(frozen=True)
class InjectionDirective:
    args: str
    registry: str = DEFAULT_REGISTRY
    image: str = DEFAULT_IMAGE
    command: str = DEFAULT_COMMAND

    @classmethod
    def from_annotations(cls, annotations: Mapping[str, str] | None) -> InjectionDirective | None:
        """Build a directive from workload annotations.

        Returns None when the args annotation is missing. Its presence alone
        activates injection, even with an empty value.
        """
        annotations = annotations or {}
        if ARGS_KEY not in annotations:
            return None
        return cls(
            args=annotations[ARGS_KEY],
            registry=default_if_empty(annotations.get(REGISTRY_KEY), DEFAULT_REGISTRY),
            image=default_if_empty(annotations.get(IMAGE_KEY), DEFAULT_IMAGE),
            command=default_if_empty(annotations.get(COMMAND_KEY), DEFAULT_COMMAND),
        )

    @property
    def image_ref(self) -> str:
        return f"{self.registry}/{self.image}:{IMAGE_TAG}"

    def to_container(self) -> client.V1Container:
        return client.V1Container(
            name=INIT_CONTAINER_NAME,
            image=self.image_ref,
            command=split_tokens(self.command),
            args=split_tokens(self.args),
        )
