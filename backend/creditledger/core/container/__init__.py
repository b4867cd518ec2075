"""Process-wide service container for creditledger.

The API process builds exactly one Container at startup. Request handlers reach
it through ``api/deps.py``; the background purge loop reads it from the lifespan.

Usage:
------
    from creditledger.core.config import settings
    from creditledger.core.container import initialize_container
    initialize_container(settings)

    from creditledger.core import container as container_mod
    gate = container_mod.container.usage_gate

Tests build a Container from in-memory fakes instead of touching the global
(see the ``test_container`` fixture in ``backend/conftest.py``).
"""

from typing import TYPE_CHECKING

from creditledger.core.container.container import Container
from creditledger.core.container.factory import create_container

if TYPE_CHECKING:
    from creditledger.core.config import Settings

__all__ = [
    "Container",
    "container",
    "create_container",
    "initialize_container",
    "reset_container",
]


container: Container | None = None
"""The wired services, or None before startup and after shutdown.

Domain packages never import this; their collaborators arrive as
constructor arguments.
"""


def initialize_container(settings: "Settings") -> None:
    """Build the global container from ``settings``.

    Raises:
        RuntimeError: If a container is already installed. Shutdown must call
            ``reset_container`` before a second startup in the same process.
    """
    global container

    if container is not None:
        raise RuntimeError("Container already initialized; call reset_container() first.")

    container = create_container(settings)


def reset_container() -> None:
    """Drop the global container. Called on shutdown and by tests."""
    global container
    container = None
