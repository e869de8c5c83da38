import logging
import os
from configparser import ConfigParser
from pathlib import Path
from typing import Any, Callable, Dict, NamedTuple, Optional

from unifi_access.constants import (
    CONFIG,
    DEFAULT_POLL_INTERVAL,
    REQUEST_TIMEOUT,
    UNIFI_ACCESS_API_PORT,
)
from .log_codes import SETTINGS_RESOLVED

logger = logging.getLogger(__name__)

CLIENT_SECTION_NAME = "client"

ENV_HOST = "UNIFI_ACCESS_HOST"
ENV_TOKEN = "UNIFI_ACCESS_TOKEN"
ENV_PORT = "UNIFI_ACCESS_PORT"
ENV_TIMEOUT = "UNIFI_ACCESS_TIMEOUT"
ENV_POLL_INTERVAL = "UNIFI_ACCESS_POLL_INTERVAL"


class ClientSettings(NamedTuple):
    """
    Connection settings for a single controller.

    Args:
        host (str): Hostname or LAN IP of the controller.
        token (str): API token created in the Access settings.
        port (int): HTTPS port of the developer API.
        timeout (float): Per request timeout in seconds.
        poll_interval (float): Delay between enrollment status polls.
    """

    host: str
    token: str
    port: int = UNIFI_ACCESS_API_PORT
    timeout: float = REQUEST_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL

    @property
    def base_url(self) -> str:
        return f"https://{self.host}:{self.port}"

    def as_dict(self) -> Dict[str, Any]:
        # Never log the token
        return {
            "host": self.host,
            "port": self.port,
            "timeout": self.timeout,
            "poll_interval": self.poll_interval,
        }


_FIELDS: Dict[str, tuple] = {
    "host": (ENV_HOST, str),
    "token": (ENV_TOKEN, str),
    "port": (ENV_PORT, int),
    "timeout": (ENV_TIMEOUT, float),
    "poll_interval": (ENV_POLL_INTERVAL, float),
}


def _read_config_section(config_path: Path) -> Dict[str, str]:
    config = ConfigParser()
    config_files = config.read([config_path])

    if not config_files or not config.has_section(CLIENT_SECTION_NAME):
        return {}

    return {
        key: value.strip()
        for key, value in config[CLIENT_SECTION_NAME].items()
        if value.strip()
    }


def _convert(name: str, raw: Any, cast: Callable[[Any], Any], source: str) -> Any:
    try:
        value = cast(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid {name} from {source}: {raw!r}") from e

    if cast is not str and value <= 0:
        raise ValueError(f"{name} from {source} must be positive, got {raw!r}")

    return value


def get_client_settings(
    host: Optional[str] = None,
    token: Optional[str] = None,
    port: Optional[int] = None,
    timeout: Optional[float] = None,
    poll_interval: Optional[float] = None,
    config_path: Path = CONFIG,
) -> ClientSettings:
    """
    Resolve client settings field by field.

    Resolution order (first non-None wins):
      1. Explicit arguments
      2. Environment variables (UNIFI_ACCESS_HOST, UNIFI_ACCESS_TOKEN, ...)
      3. config.ini [client] section
      4. Defaults (port 12445, 10 second timeout, 100 ms poll interval)

    Raises:
        ValueError: If host or token cannot be resolved, or a value is invalid.
    """
    explicit = {
        "host": host,
        "token": token,
        "port": port,
        "timeout": timeout,
        "poll_interval": poll_interval,
    }
    from_file = _read_config_section(config_path)

    resolved: Dict[str, Any] = {}
    sources: Dict[str, str] = {}

    for name, (env_name, cast) in _FIELDS.items():
        candidates = [
            ("arguments", explicit[name]),
            ("environment", os.getenv(env_name) or None),
            ("config", from_file.get(name)),
        ]
        for source, raw in candidates:
            if raw is not None:
                resolved[name] = _convert(name, raw, cast, source)
                sources[name] = source
                break

    for required in ("host", "token"):
        if not resolved.get(required):
            raise ValueError(
                f"No controller {required} configured. Pass it explicitly, set "
                f"{_FIELDS[required][0]} or add it to the [{CLIENT_SECTION_NAME}] "
                f"section of {config_path}."
            )

    settings = ClientSettings(**resolved)
    logger.info(
        SETTINGS_RESOLVED,
        extra={"sources": sources, **settings.as_dict()},
    )
    return settings
