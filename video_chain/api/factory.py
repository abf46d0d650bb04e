"""
Client Factory
==============

Factory for creating remote job client instances.
"""

import logging
from typing import Optional, List, Dict, Type

from .base import BaseJobClient

logger = logging.getLogger(__name__)

# Registry of available clients
_CLIENTS: Dict[str, Type[BaseJobClient]] = {}


def register_client(name: str):
    """Decorator to register a client class."""
    def decorator(cls: Type[BaseJobClient]):
        _CLIENTS[name.lower()] = cls
        return cls
    return decorator


def _import_builtin_clients() -> None:
    # Importing the module runs its @register_client decorator
    from . import sora  # noqa: F401


def get_client(
    name: str,
    api_key: Optional[str] = None,
    **kwargs,
) -> BaseJobClient:
    """
    Get a remote job client instance.

    Args:
        name: Provider name (e.g., 'sora')
        api_key: Optional API key (otherwise read from environment)
        **kwargs: Additional client arguments (base_url, timeout, clock, ...)

    Returns:
        Configured client instance

    Raises:
        ValueError: If provider name is not recognized
    """
    name_lower = name.lower()

    if name_lower not in _CLIENTS:
        _import_builtin_clients()

    client_class = _CLIENTS.get(name_lower)
    if client_class is None:
        raise ValueError(f"Unknown provider: {name}")

    logger.debug(f"Creating {client_class.__name__} for provider '{name_lower}'")
    return client_class(api_key=api_key, **kwargs)


def list_clients() -> List[str]:
    """
    List all available provider names.

    Returns:
        List of provider names
    """
    _import_builtin_clients()
    return list(_CLIENTS.keys())
