from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, JsonValue

from unifi_access.constants import SYSTEM_LOGS_ENDPOINT
from unifi_access.errors import SchemaMismatch


class NfcCard(BaseModel):
    """
    An NFC card known to the access system.
    """

    # Display name of the card in the UI
    id: str
    # The physical card's token
    token: str

    model_config = ConfigDict(extra="ignore")


class AccessPolicy(BaseModel):
    id: str
    name: str

    model_config = ConfigDict(extra="ignore")


class User(BaseModel):
    """
    A user of the access system.

    ``access_policies`` is not returned by the users endpoint; it is only
    filled by ``get_all_users_with_access_information``.
    """

    id: str
    first_name: str
    last_name: str
    nfc_cards: List[NfcCard] = Field(default_factory=list)
    employee_number: str = ""
    user_email: str = ""
    access_policies: Optional[List[AccessPolicy]] = None

    model_config = ConfigDict(extra="ignore")


class Device(BaseModel):
    # Device ids are not uuids
    id: str
    name: str
    device_type: str = Field(alias="type")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SystemLogTopic(str, Enum):
    ALL = "all"
    DOOR_OPENINGS = "door_openings"
    CRITICAL = "critical"
    UPDATES = "updates"
    DEVICE_EVENTS = "device_events"
    ADMIN_ACTIVITY = "admin_activity"
    VISITOR = "visitor"


class SystemLogEvent(BaseModel):
    """
    The ``_source`` part of a system log entry. Each field is an untyped
    JSON tree; use ``extract`` to pull a nested value out of one.
    """

    actor: JsonValue = None
    authentication: JsonValue = None
    event: JsonValue = None
    target: JsonValue = None

    model_config = ConfigDict(extra="ignore")

    def extract(self, section: str, *keys: str) -> JsonValue:
        """
        Walk into one of the untyped sections.

        Args:
            section (str): One of actor, authentication, event or target.
            *keys (str): Object keys to follow, in order.

        Returns:
            JsonValue: The nested value.

        Raises:
            SchemaMismatch: If a key is missing or a step is not a JSON object.
        """
        value = getattr(self, section)
        walked = [section]
        for key in keys:
            walked.append(key)
            if not isinstance(value, dict) or key not in value:
                raise SchemaMismatch(
                    path=SYSTEM_LOGS_ENDPOINT,
                    expected=f"object with {'.'.join(walked)}",
                )
            value = value[key]
        return value


class SystemLogEventWrapper(BaseModel):
    timestamp: str = Field(alias="@timestamp")
    id: str = Field(alias="_id")
    source: SystemLogEvent = Field(alias="_source")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SystemLogResponse(BaseModel):
    hits: List[SystemLogEventWrapper] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class EnrollmentSessionInfo(BaseModel):
    session_id: str

    model_config = ConfigDict(extra="ignore")


class CardHolder(BaseModel):
    user_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class CreatedUser(BaseModel):
    id: str

    model_config = ConfigDict(extra="ignore")
