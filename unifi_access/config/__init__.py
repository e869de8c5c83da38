from .settings import ClientSettings, get_client_settings
from .tls import TLSConfig, get_tls_config

__all__ = [
    "ClientSettings",
    "TLSConfig",
    "get_client_settings",
    "get_tls_config",
]
