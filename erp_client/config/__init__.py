"""Client configuration."""

from erp_client.config.settings import ClientSettings

__all__ = [
    "ClientSettings",
]
