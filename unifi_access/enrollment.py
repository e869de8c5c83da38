"""
NFC card enrollment.

Enrolling a card is driven by a person tapping it on a reader at some
unknown time. The controller models this as a session: one request opens it
on a reader, status requests are polled until a card shows up, and a delete
closes it. ``NfcEnrollment`` walks that lifecycle for one reader:

    idle -> opening -> polling -> resolved | canceled | failed
                          \\-> ended (cancellation requested)

Running more than one session on the same reader at a time is not supported.
"""

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, NamedTuple, Optional

from unifi_access.constants import (
    DEFAULT_POLL_INTERVAL,
    NFC_SESSION_ENDPOINT,
    NFC_SESSIONS_ENDPOINT,
)
from unifi_access.errors import (
    ApiError,
    EnrollmentStateError,
    MalformedResponse,
    SessionCanceled,
    UnifiAccessError,
)
from unifi_access.models import EnrollmentSessionInfo, NfcCard
from unifi_access.platform.classifier import Sentinel, classify_response
from unifi_access.platform.envelope import decode_envelope, validate_payload
from unifi_access.platform.log_codes import (
    ENROLLMENT_CANCEL_REQUESTED,
    ENROLLMENT_CARD_RESOLVED,
    ENROLLMENT_END_FAILED,
    ENROLLMENT_POLL,
    ENROLLMENT_SESSION_ALREADY_CLOSED,
    ENROLLMENT_SESSION_ENDED,
    ENROLLMENT_SESSION_STARTED,
    ENROLLMENT_STATE,
)

if TYPE_CHECKING:
    from unifi_access.platform.client import UnifiAccessClient

logger = logging.getLogger(__name__)


class PollStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    CANCELED = "canceled"


class PollResult(NamedTuple):
    """
    Outcome of a single session status check.

    ``card`` is only set when ``status`` is RESOLVED.
    """

    status: PollStatus
    card: Optional[NfcCard] = None


class EnrollmentState(str, Enum):
    IDLE = "idle"
    OPENING = "opening"
    POLLING = "polling"
    RESOLVED = "resolved"
    CANCELED = "canceled"
    FAILED = "failed"
    ENDED = "ended"


TERMINAL_STATES = frozenset(
    {
        EnrollmentState.RESOLVED,
        EnrollmentState.CANCELED,
        EnrollmentState.FAILED,
        EnrollmentState.ENDED,
    }
)


async def open_session(
    client: "UnifiAccessClient", device_id: str, reset_ua_card: bool = True
) -> str:
    """
    Open an enrollment session on a reader.

    Returns:
        str: The session id.

    Raises:
        SchemaMismatch: If the response carries no string session_id.
    """
    info = await client.request_typed(
        EnrollmentSessionInfo,
        "POST",
        NFC_SESSIONS_ENDPOINT,
        {"device_id": device_id, "reset_ua_card": reset_ua_card},
    )
    return info.session_id


async def read_session_status(
    client: "UnifiAccessClient", session_id: str
) -> PollResult:
    """
    Check a session once and classify the answer.

    The sentinel markers are looked for in the raw body first; the
    controller does not wrap those two answers in the usual envelope.

    Raises:
        ApiError: If the envelope reports a non-success code.
        MalformedResponse: If the body is neither a sentinel nor an envelope
            carrying a card.
        SchemaMismatch: If the payload is not a card.
    """
    path = NFC_SESSION_ENDPOINT.format(session_id=session_id)
    raw = await client.request_text("GET", path)

    sentinel = classify_response(raw)
    if sentinel is Sentinel.SESSION_NOT_FOUND:
        return PollResult(PollStatus.CANCELED)
    if sentinel is Sentinel.TOKEN_EMPTY:
        return PollResult(PollStatus.PENDING)

    envelope = decode_envelope(raw)
    if not envelope.is_success:
        raise ApiError(path=path, message=envelope.msg, code=envelope.code)
    if envelope.data is None:
        raise MalformedResponse(raw=raw, reason="session status carries no card")

    card = validate_payload(NfcCard, envelope.data, path)
    return PollResult(PollStatus.RESOLVED, card)


async def close_session(client: "UnifiAccessClient", session_id: str) -> None:
    """
    End a session. A session the controller no longer knows is treated as
    already closed.
    """
    path = NFC_SESSION_ENDPOINT.format(session_id=session_id)
    raw = await client.request_text("DELETE", path)

    if classify_response(raw) is Sentinel.SESSION_NOT_FOUND:
        logger.debug(
            ENROLLMENT_SESSION_ALREADY_CLOSED, extra={"session_id": session_id}
        )
        return

    envelope = decode_envelope(raw)
    if not envelope.is_success:
        raise ApiError(path=path, message=envelope.msg, code=envelope.code)

    logger.debug(ENROLLMENT_SESSION_ENDED, extra={"session_id": session_id})


class EnrollmentCancellation:
    """
    Channel between an enrolling task and the tasks that may cancel it.

    The enrolling side publishes the session id as soon as the session is
    open, before the first poll. Other tasks can await it with
    ``wait_for_session`` and send a cancel request with ``cancel``; the
    polling loop reads pending requests between polls, ends the session and
    raises ``SessionCanceled``.

    One channel serves a single enrollment run; a restart needs a new one.
    Must be used from the event loop that runs the enrollment.
    """

    _CANCEL = "cancel"

    def __init__(self):
        self._messages: asyncio.Queue = asyncio.Queue()
        self._session_id: Optional[str] = None
        self._session_opened = asyncio.Event()

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    def publish_session(self, session_id: str) -> None:
        if self._session_id is not None:
            raise EnrollmentStateError(
                f"Session {self._session_id} was already published on this channel"
            )
        self._session_id = session_id
        self._session_opened.set()

    async def wait_for_session(self) -> str:
        """
        Wait until the enrolling task has opened its session.
        """
        await self._session_opened.wait()
        return self._session_id  # type: ignore[return-value]

    def cancel(self) -> None:
        """
        Ask the enrolling task to stop. Safe to call before the session is
        open; the request is handled before the first poll.
        """
        logger.debug(ENROLLMENT_CANCEL_REQUESTED, extra={"session_id": self._session_id})
        self._messages.put_nowait(self._CANCEL)

    def cancel_requested(self) -> bool:
        """
        Drain pending messages, return True if any was a cancel request.
        """
        requested = False
        while not self._messages.empty():
            if self._messages.get_nowait() == self._CANCEL:
                requested = True
        return requested


class NfcEnrollment:
    """
    Enrollment state machine for one reader.

    Args:
        client (UnifiAccessClient): The client to issue requests with.
        device_id (str): The reader to enroll on.
        poll_interval (float): Seconds to wait between status checks.
        reset_ua_card (bool): Forwarded to the controller when the session
            is opened.
        cancellation (Optional[EnrollmentCancellation]): Channel for external
            cancellation, created if not given.
    """

    def __init__(
        self,
        client: "UnifiAccessClient",
        device_id: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        reset_ua_card: bool = True,
        cancellation: Optional[EnrollmentCancellation] = None,
    ):
        self._client = client
        self._device_id = device_id
        self._poll_interval = poll_interval
        self._reset_ua_card = reset_ua_card
        self._cancellation = cancellation or EnrollmentCancellation()
        self._state = EnrollmentState.IDLE
        self._session_id: Optional[str] = None
        self._card: Optional[NfcCard] = None
        self.poll_count = 0

    @property
    def state(self) -> EnrollmentState:
        return self._state

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def card(self) -> Optional[NfcCard]:
        return self._card

    @property
    def cancellation(self) -> EnrollmentCancellation:
        return self._cancellation

    def _transition(self, state: EnrollmentState) -> None:
        logger.debug(
            ENROLLMENT_STATE,
            extra={
                "device_id": self._device_id,
                "session_id": self._session_id,
                "from_state": self._state.value,
                "to_state": state.value,
            },
        )
        self._state = state

    async def start(self) -> str:
        """
        Open the session and publish its id on the cancellation channel.
        """
        if self._state is not EnrollmentState.IDLE:
            raise EnrollmentStateError(
                f"Enrollment already started, state is {self._state.value}"
            )
        if self._cancellation.session_id is not None:
            raise EnrollmentStateError(
                f"Cancellation channel already carries session "
                f"{self._cancellation.session_id}, use a new channel per enrollment"
            )

        self._transition(EnrollmentState.OPENING)
        try:
            session_id = await open_session(
                self._client, self._device_id, self._reset_ua_card
            )
        except UnifiAccessError:
            self._transition(EnrollmentState.FAILED)
            raise

        self._session_id = session_id
        try:
            self._cancellation.publish_session(session_id)
        except EnrollmentStateError:
            await self._end_quietly()
            self._transition(EnrollmentState.FAILED)
            raise
        logger.info(
            ENROLLMENT_SESSION_STARTED,
            extra={"device_id": self._device_id, "session_id": session_id},
        )
        self._transition(EnrollmentState.POLLING)
        return session_id

    async def poll_once(self) -> PollResult:
        """
        Check the session once. RESOLVED and CANCELED are terminal.
        """
        if self._state is not EnrollmentState.POLLING:
            raise EnrollmentStateError(
                f"Cannot poll an enrollment in state {self._state.value}"
            )

        self.poll_count += 1
        try:
            result = await read_session_status(self._client, self._session_id)
        except UnifiAccessError:
            self._transition(EnrollmentState.FAILED)
            raise

        logger.debug(
            ENROLLMENT_POLL,
            extra={
                "session_id": self._session_id,
                "attempt": self.poll_count,
                "status": result.status.value,
            },
        )

        if result.status is PollStatus.RESOLVED:
            self._card = result.card
            self._transition(EnrollmentState.RESOLVED)
        elif result.status is PollStatus.CANCELED:
            self._transition(EnrollmentState.CANCELED)

        return result

    async def end(self) -> None:
        """
        Close the session on the controller. Safe after the session resolved
        or expired.
        """
        if self._session_id is None:
            raise EnrollmentStateError("No session has been opened")

        await close_session(self._client, self._session_id)
        if self._state is EnrollmentState.POLLING:
            self._transition(EnrollmentState.ENDED)

    async def run(self) -> NfcCard:
        """
        Start the session and poll until a card is tapped.

        There is no timeout. Cancel through the cancellation channel, by
        ending the session from elsewhere, or by cancelling the task; the
        session is closed on the controller in every case.

        Raises:
            SessionCanceled: If the session was closed before a card was read.
        """
        await self.start()

        try:
            while True:
                if self._cancellation.cancel_requested():
                    await self.end()
                    raise SessionCanceled(self._session_id)

                result = await self.poll_once()
                if result.status is PollStatus.RESOLVED:
                    logger.info(
                        ENROLLMENT_CARD_RESOLVED,
                        extra={"session_id": self._session_id, "card_id": result.card.id},
                    )
                    return result.card
                if result.status is PollStatus.CANCELED:
                    raise SessionCanceled(self._session_id)

                await asyncio.sleep(self._poll_interval)
        except asyncio.CancelledError:
            if self._state is EnrollmentState.POLLING:
                await self._end_quietly()
            raise

    async def _end_quietly(self) -> None:
        try:
            await self.end()
        except UnifiAccessError as e:
            logger.warning(
                ENROLLMENT_END_FAILED,
                extra={"session_id": self._session_id, "error": str(e)},
            )
