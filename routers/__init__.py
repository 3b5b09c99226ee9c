# routers/__init__.py
from dynaconf import Dynaconf

from .base import BaseRouter
from .local import LocalRouter
from .ssh import SshRouter


def get_router(config: Dynaconf) -> BaseRouter:
    """Router factory: returns an instance of the appropriate router class."""

    router_type = config.general.router_type

    if router_type == "local":
        return LocalRouter(config.local_router)
    elif router_type == "ssh":
        return SshRouter(config.ssh_router)
    else:
        raise ValueError(f"Unsupported router type: {router_type}")
