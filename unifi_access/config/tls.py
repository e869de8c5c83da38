import os
import ssl
from ssl import SSLContext
from pathlib import Path
from typing import NamedTuple, Optional, Union
from configparser import ConfigParser

import certifi
import truststore

from unifi_access.constants import CONFIG
from .log_codes import (
    TLS_RESOLVED,
    TLS_RESOLUTION_FALLBACK_DEFAULT,
    TLS_CA_BUNDLE_RESOLVED,
    TLS_DEVICE_CERT_RESOLVED,
    TLS_VERIFICATION_DISABLED,
)

import logging

logger = logging.getLogger(__name__)

TLS_SECTION_NAME = "tls"
TLS_MODE_KEY = "mode"
TLS_CA_BUNDLE_KEY = "ca_bundle"
TLS_DEVICE_CERT_KEY = "device_cert"

ENV_TLS_MODE = "UNIFI_ACCESS_TLS_MODE"
ENV_CA_BUNDLE = "UNIFI_ACCESS_CA_BUNDLE"
ENV_DEVICE_CERT = "UNIFI_ACCESS_DEVICE_CERT"

# The controller ships a self-signed certificate, so the default accepts it.
DEFAULT_TLS_MODE: str = "insecure"
VALID_TLS_MODES = ("device", "insecure", "default", "system", "bundle")


class TLSConfig(NamedTuple):
    """
    TLS configuration containing mode, certificate path, and resolved verify context.

    Args:
        mode (str): The TLS mode ('device', 'insecure', 'default', 'system', 'bundle').
        cert_path (Optional[Path]): The CA bundle for 'bundle', or the
            controller certificate for 'device'.
        verify_context (SSLContext): The resolved verification context.
    """

    mode: str
    cert_path: Optional[Path]
    verify_context: SSLContext

    @property
    def trusts_any_certificate(self) -> bool:
        return self.mode == "insecure"

    def as_dict(self) -> dict[str, Union[str, Path, None]]:
        """
        Convert TLS configuration to dictionary representation.

        Returns:
            dict: Dictionary containing TLS configuration data.
        """
        return {
            TLS_MODE_KEY: self.mode,
            "cert_path": str(self.cert_path) if self.cert_path else None,
        }


def _normalize_cert_path(path: Optional[Path], source: str = "unknown") -> Path:
    """
    Validate and normalize a certificate file path.

    Args:
        path (Optional[Path]): The path to validate.
        source (str): The source of the path for logging.

    Returns:
        Path: The validated and normalized path.

    Raises:
        ValueError: If the path is invalid.
    """
    if not path:
        raise ValueError("Certificate path is empty")

    path = path.expanduser().resolve()

    if not path.exists():
        raise ValueError(f"Certificate path does not exist: {path}")

    if not path.is_file():
        raise ValueError(f"Certificate path is not a file: {path}")

    if not os.access(path, os.R_OK):
        raise ValueError(f"Certificate is not readable: {path}")

    return path


def _infer_effective_mode(
    raw_mode: Optional[str],
    raw_bundle: Optional[str],
    raw_device_cert: Optional[str],
) -> tuple[Optional[str], Optional[Path]]:
    """
    Infer effective mode and certificate path from raw inputs.

    A device certificate without a mode implies 'device', a CA bundle
    without a mode implies 'bundle'.

    Returns:
        tuple[Optional[str], Optional[Path]]: Effective mode and certificate path.

    Raises:
        ValueError: If both a CA bundle and a device certificate are given.
    """
    if raw_bundle and raw_device_cert:
        raise ValueError(
            "Both a CA bundle and a device certificate were provided, pick one."
        )

    raw_path = raw_bundle or raw_device_cert
    cert_path = Path(raw_path) if raw_path else None

    if raw_mode:
        return raw_mode, cert_path
    if raw_device_cert:
        return "device", cert_path
    if raw_bundle:
        return "bundle", cert_path

    return None, None


def _normalize_mode(raw: Optional[str]) -> str:
    """
    Validate and normalize TLS mode.

    Raises:
        ValueError: If the mode is invalid.
    """
    if not raw:
        return DEFAULT_TLS_MODE

    mode = raw.strip().lower()
    if mode not in VALID_TLS_MODES:
        raise ValueError(
            f"Invalid TLS mode: {raw!r}. Valid options: {', '.join(VALID_TLS_MODES)}"
        )
    return mode


def _device_context(cert_path: Path) -> SSLContext:
    # Only the pinned controller certificate is trusted. Controllers are
    # addressed by LAN IP, which their certificates never name.
    context = ssl.create_default_context(cafile=str(cert_path))
    context.check_hostname = False
    context.verify_mode = ssl.CERT_REQUIRED
    context.verify_flags |= ssl.VERIFY_X509_PARTIAL_CHAIN
    return context


def _insecure_context() -> SSLContext:
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def _build_tls_config(
    mode: Optional[str],
    cert_path: Optional[Path],
    source: str = "unknown",
) -> TLSConfig:
    """
    Build a TLS configuration from validated parameters.

    Args:
        mode (Optional[str]): The TLS mode (None defaults to DEFAULT_TLS_MODE).
        cert_path (Optional[Path]): The CA bundle or controller certificate.
        source (str): The source of the configuration for logging.

    Returns:
        TLSConfig: The built TLS configuration.

    Raises:
        ValueError: If the configuration is invalid.
    """
    normalized_mode = _normalize_mode(mode)

    if cert_path and normalized_mode not in ("bundle", "device"):
        raise ValueError(
            f"TLS mode is {normalized_mode!r}, but a certificate path was provided."
        )

    normalized_path = None

    if normalized_mode == "device":
        if not cert_path:
            raise ValueError("TLS mode 'device' requires the controller certificate.")
        normalized_path = _normalize_cert_path(cert_path, source)
        logger.debug(
            TLS_DEVICE_CERT_RESOLVED,
            extra={"path": str(normalized_path), "source": source},
        )
        verify_context = _device_context(normalized_path)
    elif normalized_mode == "bundle":
        normalized_path = _normalize_cert_path(cert_path, source)
        logger.debug(
            TLS_CA_BUNDLE_RESOLVED,
            extra={"path": str(normalized_path), "source": source},
        )
        verify_context = ssl.create_default_context(cafile=str(normalized_path))
    elif normalized_mode == "system":
        verify_context = truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    elif normalized_mode == "default":
        verify_context = ssl.create_default_context(cafile=certifi.where())
    else:  # normalized_mode == "insecure"
        logger.warning(TLS_VERIFICATION_DISABLED, extra={"source": source})
        verify_context = _insecure_context()

    return TLSConfig(
        mode=normalized_mode,
        cert_path=normalized_path,
        verify_context=verify_context,
    )


def _build_tls_config_from_source(
    raw_mode: Optional[str],
    raw_bundle: Optional[str],
    raw_device_cert: Optional[str],
    source: str,
) -> Optional[TLSConfig]:
    """
    Common logic for building TLS config from any source.

    Returns:
        Optional[TLSConfig]: The TLS configuration, or None if the source
        defines nothing.
    """
    effective_mode, cert_path = _infer_effective_mode(
        raw_mode, raw_bundle, raw_device_cert
    )

    if not effective_mode:
        return None

    return _build_tls_config(mode=effective_mode, cert_path=cert_path, source=source)


def _tls_from_env() -> Optional[TLSConfig]:
    """
    Retrieve the TLS configuration from environment variables.

    Environment variables:
        UNIFI_ACCESS_TLS_MODE: TLS mode
        UNIFI_ACCESS_CA_BUNDLE: Path to CA bundle (implies mode='bundle')
        UNIFI_ACCESS_DEVICE_CERT: Path to controller certificate (implies mode='device')
    """
    return _build_tls_config_from_source(
        os.getenv(ENV_TLS_MODE),
        os.getenv(ENV_CA_BUNDLE),
        os.getenv(ENV_DEVICE_CERT),
        "environment",
    )


def _tls_from_config_ini(config_path: Path) -> Optional[TLSConfig]:
    """
    Retrieve the TLS configuration from the config.ini file.
    """
    config = ConfigParser()
    config_files = config.read([config_path])

    if not config_files or not config.has_section(TLS_SECTION_NAME):
        return None

    section = config[TLS_SECTION_NAME]

    raw_mode = section.get(TLS_MODE_KEY, "").strip() or None
    raw_bundle = section.get(TLS_CA_BUNDLE_KEY, "").strip() or None
    raw_device_cert = section.get(TLS_DEVICE_CERT_KEY, "").strip() or None

    return _build_tls_config_from_source(raw_mode, raw_bundle, raw_device_cert, "config")


def get_tls_config(
    mode: Optional[str] = None,
    ca_bundle: Optional[str] = None,
    device_cert: Optional[str] = None,
    config_path: Path = CONFIG,
) -> TLSConfig:
    """
    Resolve the effective TLS verification configuration.

    Resolution order (first non-None wins):
      1. Explicit arguments (mode, ca_bundle, device_cert)
      2. Environment variables
      3. config.ini [tls] section
      4. Default: accept the controller's self-signed certificate

    TLS Modes:
        - device: Trust only the given controller certificate
        - insecure: Disable certificate verification entirely
        - default: Use certifi.where() (bundled CA certificates)
        - system: Use the system trust store via truststore
        - bundle: Use a custom CA bundle file

    Raises:
        ValueError: If the TLS configuration is invalid.
    """
    sources = [
        (
            "arguments",
            lambda: _build_tls_config_from_source(
                mode, ca_bundle, device_cert, "arguments"
            ),
        ),
        ("environment", lambda: _tls_from_env()),
        ("config", lambda: _tls_from_config_ini(config_path=config_path)),
    ]

    for source_name, source_func in sources:
        result = source_func()
        if result is not None:
            extra = {"source": source_name, **result.as_dict()}
            if source_name == "config":
                extra["config_path"] = str(config_path)
            logger.info(TLS_RESOLVED, extra=extra)
            return result

    default_result = _build_tls_config(
        mode=DEFAULT_TLS_MODE, cert_path=None, source="default"
    )

    extra = {
        "source": "default",
        "config_path": str(config_path),
        **default_result.as_dict(),
    }
    logger.info(TLS_RESOLUTION_FALLBACK_DEFAULT, extra=extra)
    return default_result
