# -*- coding: utf-8 -*-
"""
Client for the UniFi Access developer API.

The API is only reachable on the controller's LAN, over HTTPS on port 12445,
with a token created under Settings -> Security -> Advanced.
"""

__author__ = """unifi-access contributors"""

from .enrollment import (
    EnrollmentCancellation,
    EnrollmentState,
    NfcEnrollment,
    PollResult,
    PollStatus,
)
from .errors import (
    ApiError,
    EnrollmentStateError,
    MalformedResponse,
    MissingData,
    SchemaMismatch,
    SessionCanceled,
    TransportError,
    UnifiAccessError,
)
from .models import (
    AccessPolicy,
    Device,
    NfcCard,
    SystemLogEvent,
    SystemLogEventWrapper,
    SystemLogTopic,
    User,
)
from .platform.client import UnifiAccessClient

__all__ = [
    "AccessPolicy",
    "ApiError",
    "Device",
    "EnrollmentCancellation",
    "EnrollmentState",
    "EnrollmentStateError",
    "MalformedResponse",
    "MissingData",
    "NfcCard",
    "NfcEnrollment",
    "PollResult",
    "PollStatus",
    "SchemaMismatch",
    "SessionCanceled",
    "SystemLogEvent",
    "SystemLogEventWrapper",
    "SystemLogTopic",
    "TransportError",
    "UnifiAccessClient",
    "UnifiAccessError",
    "User",
]
