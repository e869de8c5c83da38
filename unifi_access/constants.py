# -*- coding: utf-8 -*-
import os
from pathlib import Path

DIR_NAME = ".unifi-access"
CONFIG_FILE_NAME = "config.ini"

ENV_CONFIG_PATH = "UNIFI_ACCESS_CONFIG"


def get_user_dir() -> Path:
    """
    Get the user directory for the unifi-access configuration.

    Returns:
        Path: The user directory path.
    """
    return Path("~", DIR_NAME).expanduser()


def get_config_path() -> Path:
    """
    Get the config.ini path, honouring the UNIFI_ACCESS_CONFIG override.

    Returns:
        Path: The config file path.
    """
    raw = os.getenv(ENV_CONFIG_PATH)
    if raw:
        return Path(raw).expanduser()

    return get_user_dir() / CONFIG_FILE_NAME


CONFIG = get_config_path()

# Wire protocol
UNIFI_ACCESS_API_PORT = 12445
REQUEST_TIMEOUT = 10
SUCCESS_CODE = "SUCCESS"

# Raw response bodies are logged at this level, below DEBUG
TRACE = 5

# Enrollment
DEFAULT_POLL_INTERVAL = 0.1
ERROR_SNIPPET_LENGTH = 200

# Endpoints
API_PREFIX = "/api/v1/developer"

USERS_ENDPOINT = f"{API_PREFIX}/users"
USER_ENDPOINT = f"{USERS_ENDPOINT}/{{user_id}}"
USER_ACCESS_POLICIES_ENDPOINT = f"{USER_ENDPOINT}/access_policies"
USER_NFC_CARDS_ENDPOINT = f"{USER_ENDPOINT}/nfc_cards"
USER_NFC_CARDS_DELETE_ENDPOINT = f"{USER_NFC_CARDS_ENDPOINT}/delete"

ACCESS_POLICIES_ENDPOINT = f"{API_PREFIX}/access_policies"
DEVICES_ENDPOINT = f"{API_PREFIX}/devices"
SYSTEM_LOGS_ENDPOINT = f"{API_PREFIX}/system/logs"

NFC_CARDS_ENDPOINT = f"{API_PREFIX}/credentials/nfc_cards"
NFC_SESSIONS_ENDPOINT = f"{NFC_CARDS_ENDPOINT}/sessions"
NFC_SESSION_ENDPOINT = f"{NFC_SESSIONS_ENDPOINT}/{{session_id}}"
NFC_TOKEN_ENDPOINT = f"{NFC_CARDS_ENDPOINT}/tokens/{{token}}"
