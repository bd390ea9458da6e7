"""Configuration module for the identity resolution service."""
from .providers import Driver, Endpoints, Mappings, ProviderConfig, load_providers
from .settings import AppConfig, load_settings

__all__ = [
    "AppConfig",
    "Driver",
    "Endpoints",
    "Mappings",
    "ProviderConfig",
    "load_providers",
    "load_settings",
]
