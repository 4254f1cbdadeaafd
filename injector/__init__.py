"""Init Container Injector.

Small control loop that watches Deployments and injects an init container
described by annotations on the Deployment itself:

 - ``initcontainer_injector_args`` (required, activates injection)
 - ``initcontainer_injector_registry`` / ``_image`` / ``_command`` (optional)

Injection is idempotent by name: a Deployment that already carries an
``injected-init`` init container is never touched again.
"""
