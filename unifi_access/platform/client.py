"""
UniFi Access client.

This module contains the UnifiAccessClient which handles all communication
with the controller's developer API: the generic envelope handling shared by
every call, and the user, access policy, device, NFC card and system log
operations built on top of it.
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import JsonValue

from unifi_access.config import TLSConfig, get_client_settings, get_tls_config
from unifi_access.constants import (
    ACCESS_POLICIES_ENDPOINT,
    CONFIG,
    DEVICES_ENDPOINT,
    NFC_TOKEN_ENDPOINT,
    SYSTEM_LOGS_ENDPOINT,
    USER_ACCESS_POLICIES_ENDPOINT,
    USER_ENDPOINT,
    USER_NFC_CARDS_DELETE_ENDPOINT,
    USER_NFC_CARDS_ENDPOINT,
    USERS_ENDPOINT,
)
from unifi_access.enrollment import (
    EnrollmentCancellation,
    NfcEnrollment,
    PollResult,
    close_session,
    open_session,
    read_session_status,
)
from unifi_access.errors import ApiError, MissingData
from unifi_access.models import (
    AccessPolicy,
    CardHolder,
    CreatedUser,
    Device,
    NfcCard,
    SystemLogEventWrapper,
    SystemLogResponse,
    SystemLogTopic,
    User,
)
from .envelope import decode_envelope, validate_payload
from .log_codes import (
    CARD_DELETED,
    CARD_UNASSIGNED,
    ENVELOPE_NOT_SUCCESS,
    USER_REGISTER,
)
from .transport import Transport

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnifiAccessClient:
    """
    Async client for the UniFi Access developer API.

    The client keeps no per-call state, so a single instance can serve many
    concurrent tasks.

    Args:
        host (Optional[str]): Hostname or LAN IP of the controller.
        token (Optional[str]): API token, created under
            Settings -> Security -> Advanced.
        tls_config (Optional[TLSConfig]): Certificate trust configuration.
            Takes precedence over tls_mode, device_cert and ca_bundle.
        tls_mode (Optional[str]): 'device' to trust only the controller
            certificate given in device_cert, 'insecure' to accept any
            certificate, or 'default', 'system', 'bundle'.
        device_cert (Optional[str]): Path to the controller's PEM certificate.
        ca_bundle (Optional[str]): Path to a CA bundle for 'bundle' mode.
        port (Optional[int]): API port, 12445 unless overridden.
        timeout (Optional[float]): Per request timeout in seconds.
        poll_interval (Optional[float]): Enrollment poll interval in seconds.
        config_path (Path): config.ini used for values not given explicitly.
        transport (Optional[httpx.AsyncBaseTransport]): Network layer override.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        token: Optional[str] = None,
        *,
        tls_config: Optional[TLSConfig] = None,
        tls_mode: Optional[str] = None,
        device_cert: Optional[str] = None,
        ca_bundle: Optional[str] = None,
        port: Optional[int] = None,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        config_path: Path = CONFIG,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = get_client_settings(
            host=host,
            token=token,
            port=port,
            timeout=timeout,
            poll_interval=poll_interval,
            config_path=config_path,
        )
        self._tls_config = tls_config or get_tls_config(
            mode=tls_mode,
            ca_bundle=ca_bundle,
            device_cert=device_cert,
            config_path=config_path,
        )
        self._transport = Transport(self._settings, self._tls_config, transport)

    async def __aenter__(self) -> "UnifiAccessClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()

    @property
    def host(self) -> str:
        return self._settings.host

    @property
    def tls_config(self) -> TLSConfig:
        return self._tls_config

    @property
    def poll_interval(self) -> float:
        return self._settings.poll_interval

    async def request_text(
        self, method: str, path: str, body: Optional[Any] = None
    ) -> str:
        """
        Send a request and return the raw body without decoding it.
        """
        return await self._transport.send(method, path, body)

    async def request_raw(
        self, method: str, path: str, body: Optional[Any] = None
    ) -> Optional[JsonValue]:
        """
        Send a request and check the envelope status without parsing the payload.

        Args:
            method (str): HTTP method.
            path (str): API path.
            body (Optional[Any]): JSON request body.

        Returns:
            Optional[JsonValue]: The envelope's data, None when the controller
            answered successfully without a payload.

        Raises:
            ApiError: If the envelope code is not SUCCESS.
            MalformedResponse: If the body is not an envelope.
            TransportError: If the request failed.
        """
        raw = await self.request_text(method, path, body)
        envelope = decode_envelope(raw)

        if not envelope.is_success:
            logger.debug(
                ENVELOPE_NOT_SUCCESS,
                extra={"path": path, "code": envelope.code},
            )
            raise ApiError(path=path, message=envelope.msg, code=envelope.code)

        return envelope.data

    async def request_typed(
        self,
        shape: Type[T],
        method: str,
        path: str,
        body: Optional[Any] = None,
    ) -> T:
        """
        Send a request and validate the envelope's data against ``shape``.

        Args:
            shape (Type[T]): Anything a pydantic TypeAdapter accepts.
            method (str): HTTP method.
            path (str): API path.
            body (Optional[Any]): JSON request body.

        Returns:
            T: The validated payload.

        Raises:
            MissingData: If the envelope has no data.
            SchemaMismatch: If the data does not validate against ``shape``.
        """
        payload = await self.request_raw(method, path, body)
        if payload is None:
            raise MissingData(path=path)

        return validate_payload(shape, payload, path)

    async def get_all_users(self) -> List[User]:
        """
        Get every user. Pagination is not used.
        """
        return await self.request_typed(List[User], "GET", USERS_ENDPOINT)

    async def get_all_users_with_access_information(self) -> List[User]:
        """
        Same as get_all_users, with each user's access policies filled in.
        Costs one extra request per user.
        """
        users = await self.get_all_users()
        for user in users:
            user.access_policies = await self.get_access_policies_for_user(user.id)
        return users

    async def register_user(
        self,
        first_name: str,
        last_name: str,
        email: str,
        employee_number: str,
    ) -> str:
        """
        Register a new user.

        Returns:
            str: The id of the created user.
        """
        logger.debug(
            USER_REGISTER,
            extra={"first_name": first_name, "last_name": last_name},
        )
        created = await self.request_typed(
            CreatedUser,
            "POST",
            USERS_ENDPOINT,
            {
                "first_name": first_name,
                "last_name": last_name,
                "user_email": email,
                "employee_number": employee_number,
                "onboard_time": int(time.time()),
            },
        )
        return created.id

    async def get_user_by_id(self, user_id: str) -> User:
        return await self.request_typed(
            User, "GET", USER_ENDPOINT.format(user_id=user_id)
        )

    async def get_all_access_policies(self) -> List[AccessPolicy]:
        return await self.request_typed(
            List[AccessPolicy], "GET", ACCESS_POLICIES_ENDPOINT
        )

    async def get_access_policies_for_user(self, user_id: str) -> List[AccessPolicy]:
        return await self.request_typed(
            List[AccessPolicy],
            "GET",
            USER_ACCESS_POLICIES_ENDPOINT.format(user_id=user_id),
        )

    async def assign_access_policies(
        self, user_id: str, policy_ids: List[str]
    ) -> None:
        """
        Replace the access policies of a user.
        """
        await self.request_raw(
            "PUT",
            USER_ACCESS_POLICIES_ENDPOINT.format(user_id=user_id),
            {"access_policy_ids": list(policy_ids)},
        )

    async def remove_all_access_policies_from_user(self, user_id: str) -> None:
        """
        Remove every access policy from a user. The user becomes inactive but
        keeps their NFC cards.
        """
        await self.assign_access_policies(user_id, [])

    async def get_devices(self) -> List[Device]:
        # The endpoint returns a list of lists of devices
        nested = await self.request_typed(
            List[List[Device]], "GET", DEVICES_ENDPOINT
        )
        return [device for group in nested for device in group]

    async def assign_nfc_card(self, user_id: str, card: NfcCard) -> None:
        await self.request_raw(
            "PUT",
            USER_NFC_CARDS_ENDPOINT.format(user_id=user_id),
            {"token": card.token},
        )

    async def fetch_nfc_card_user(self, card: NfcCard) -> Optional[str]:
        """
        Get the id of the user the card is assigned to, if any.
        """
        holder = await self.request_typed(
            CardHolder, "GET", NFC_TOKEN_ENDPOINT.format(token=card.token)
        )
        return holder.user_id

    async def remove_nfc_card(self, card: NfcCard) -> None:
        """
        Delete an NFC card from the system.

        The card is unassigned from its holder first. It has to be enrolled
        again before it can be used.
        """
        user_id = await self.fetch_nfc_card_user(card)
        if user_id:
            logger.info(CARD_UNASSIGNED, extra={"card_id": card.id, "user_id": user_id})
            await self.request_raw(
                "PUT",
                USER_NFC_CARDS_DELETE_ENDPOINT.format(user_id=user_id),
                {"token": card.token},
            )

        await self.request_raw("DELETE", NFC_TOKEN_ENDPOINT.format(token=card.token))
        logger.info(CARD_DELETED, extra={"card_id": card.id})

    async def fetch_system_log(
        self,
        topic: SystemLogTopic,
        start_time: Optional[float] = None,
    ) -> List[SystemLogEventWrapper]:
        """
        Read the system log for a topic.

        Args:
            topic (SystemLogTopic): The log topic.
            start_time (Optional[float]): Unix timestamp to read from.

        Returns:
            List[SystemLogEventWrapper]: The log entries.
        """
        body: Dict[str, Any] = {
            "topic": SystemLogTopic(topic).value,
            "since": int(start_time) if start_time is not None else None,
        }
        # The controller only accepts POST here
        response = await self.request_typed(
            SystemLogResponse, "POST", SYSTEM_LOGS_ENDPOINT, body
        )
        return response.hits

    async def start_nfc_enrollment_session(
        self, device_id: str, reset_ua_card: bool = True
    ) -> str:
        """
        Open an enrollment session on a reader. The reader starts waiting
        for a card tap.

        Returns:
            str: The session id.
        """
        return await open_session(self, device_id, reset_ua_card)

    async def get_nfc_enrollment_session_status(self, session_id: str) -> PollResult:
        """
        Check an enrollment session once.
        """
        return await read_session_status(self, session_id)

    async def end_enrollment_session(self, session_id: str) -> None:
        """
        End an enrollment session. Sessions that are already gone are fine.
        """
        await close_session(self, session_id)

    def nfc_enrollment(
        self,
        device_id: str,
        cancellation: Optional[EnrollmentCancellation] = None,
        poll_interval: Optional[float] = None,
        reset_ua_card: bool = True,
    ) -> NfcEnrollment:
        """
        Create an enrollment state machine for one reader.
        """
        return NfcEnrollment(
            self,
            device_id,
            poll_interval=self.poll_interval if poll_interval is None else poll_interval,
            reset_ua_card=reset_ua_card,
            cancellation=cancellation,
        )

    async def enroll_nfc_card(
        self,
        device_id: str,
        cancellation: Optional[EnrollmentCancellation] = None,
        poll_interval: Optional[float] = None,
    ) -> NfcCard:
        """
        Enroll a single card: open a session on the reader and poll until a
        card is tapped.

        Args:
            device_id (str): The reader to enroll on.
            cancellation (Optional[EnrollmentCancellation]): Channel another
                task can use to learn the session id and cancel enrollment.
            poll_interval (Optional[float]): Overrides the configured interval.

        Returns:
            NfcCard: The enrolled card.

        Raises:
            SessionCanceled: If the session was closed before a card was read.
        """
        enrollment = self.nfc_enrollment(
            device_id, cancellation=cancellation, poll_interval=poll_interval
        )
        return await enrollment.run()

