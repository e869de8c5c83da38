import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from unifi_access.enrollment import (
    EnrollmentCancellation,
    EnrollmentState,
    NfcEnrollment,
    PollStatus,
)
from unifi_access.errors import (
    ApiError,
    EnrollmentStateError,
    MalformedResponse,
    SchemaMismatch,
    SessionCanceled,
    UnifiAccessError,
)
from unifi_access.models import NfcCard
from tests.helpers import envelope

SESSIONS = "/api/v1/developer/credentials/nfc_cards/sessions"
SESSION = f"{SESSIONS}/sess-1"

TOKEN_EMPTY = '{"code":"CODE_CREDS_NFC_READ_POLL_TOKEN_EMPTY","msg":"TOKEN_EMPTY"}'
SESSION_NOT_FOUND = '{"code":"CODE_CREDS_NFC_READ_SESSION_NOT_FOUND","msg":"SESSION_NOT_FOUND"}'
CARD = envelope({"id": "Card 7", "token": "f2a9c1"})


def open_session_replies(controller, session_id="sess-1"):
    controller.add("POST", SESSIONS, envelope({"session_id": session_id}))


@pytest.mark.unit
class TestEnroll:
    @pytest.mark.asyncio
    async def test_resolves_after_pending_polls(self, client, controller):
        open_session_replies(controller)
        controller.add("GET", SESSION, TOKEN_EMPTY, TOKEN_EMPTY, CARD)

        with patch("unifi_access.enrollment.asyncio.sleep", new_callable=AsyncMock) as sleep:
            card = await client.enroll_nfc_card("reader-1", poll_interval=0.1)

        assert card == NfcCard(id="Card 7", token="f2a9c1")
        assert len(controller.calls("GET", SESSION)) == 3
        poll_sleeps = [call for call in sleep.await_args_list if call.args == (0.1,)]
        assert len(poll_sleeps) == 2

        body = json.loads(controller.calls("POST", SESSIONS)[0].content)
        assert body == {"device_id": "reader-1", "reset_ua_card": True}

    @pytest.mark.asyncio
    async def test_session_not_found_stops_immediately(self, client, controller):
        open_session_replies(controller)
        controller.add("GET", SESSION, TOKEN_EMPTY, SESSION_NOT_FOUND, CARD)

        with pytest.raises(SessionCanceled) as exc_info:
            await client.enroll_nfc_card("reader-1")

        assert exc_info.value.session_id == "sess-1"
        assert len(controller.calls("GET", SESSION)) == 2

    @pytest.mark.asyncio
    async def test_session_canceled_is_its_own_kind(self, client, controller):
        open_session_replies(controller)
        controller.add("GET", SESSION, SESSION_NOT_FOUND)

        with pytest.raises(SessionCanceled) as exc_info:
            await client.enroll_nfc_card("reader-1")

        for other in (ApiError, MalformedResponse, SchemaMismatch):
            assert not isinstance(exc_info.value, other)

    @pytest.mark.asyncio
    async def test_start_failure_propagates_without_polling(self, client, controller):
        controller.add("POST", SESSIONS, envelope(code="CODE_DEVICE_OFFLINE", msg="device offline"))

        with pytest.raises(ApiError, match="device offline"):
            await client.enroll_nfc_card("reader-1")

        assert controller.calls("GET") == []

    @pytest.mark.asyncio
    async def test_poll_error_propagates(self, client, controller):
        open_session_replies(controller)
        controller.add("GET", SESSION, TOKEN_EMPTY, "502 Bad Gateway")

        with pytest.raises(MalformedResponse):
            await client.enroll_nfc_card("reader-1")

        assert len(controller.calls("GET", SESSION)) == 2


@pytest.mark.unit
class TestPollOnce:
    @pytest.mark.asyncio
    async def test_pending(self, client, controller):
        controller.add("GET", SESSION, TOKEN_EMPTY)

        result = await client.get_nfc_enrollment_session_status("sess-1")

        assert result.status is PollStatus.PENDING
        assert result.card is None

    @pytest.mark.asyncio
    async def test_canceled(self, client, controller):
        controller.add("GET", SESSION, "SESSION_NOT_FOUND")

        result = await client.get_nfc_enrollment_session_status("sess-1")

        assert result.status is PollStatus.CANCELED

    @pytest.mark.asyncio
    async def test_resolved(self, client, controller):
        controller.add("GET", SESSION, CARD)

        result = await client.get_nfc_enrollment_session_status("sess-1")

        assert result.status is PollStatus.RESOLVED
        assert result.card == NfcCard(id="Card 7", token="f2a9c1")

    @pytest.mark.asyncio
    async def test_success_without_card_is_malformed(self, client, controller):
        controller.add("GET", SESSION, envelope())

        with pytest.raises(MalformedResponse):
            await client.get_nfc_enrollment_session_status("sess-1")

    @pytest.mark.asyncio
    async def test_garbage_is_never_pending(self, client, controller):
        controller.add("GET", SESSION, "upstream connect error")

        with pytest.raises(MalformedResponse):
            await client.get_nfc_enrollment_session_status("sess-1")

    @pytest.mark.asyncio
    async def test_non_success_code(self, client, controller):
        controller.add("GET", SESSION, envelope(code="CODE_SYSTEM_ERROR", msg="reader busy"))

        with pytest.raises(ApiError, match="reader busy"):
            await client.get_nfc_enrollment_session_status("sess-1")

    @pytest.mark.asyncio
    async def test_payload_that_is_not_a_card(self, client, controller):
        controller.add("GET", SESSION, envelope({"id": "Card 7"}))

        with pytest.raises(SchemaMismatch):
            await client.get_nfc_enrollment_session_status("sess-1")


@pytest.mark.unit
class TestEndSession:
    @pytest.mark.asyncio
    async def test_end(self, client, controller):
        controller.add("DELETE", SESSION, envelope())

        await client.end_enrollment_session("sess-1")

        assert len(controller.calls("DELETE", SESSION)) == 1

    @pytest.mark.asyncio
    async def test_end_tolerates_closed_session(self, client, controller):
        controller.add("DELETE", SESSION, SESSION_NOT_FOUND)

        await client.end_enrollment_session("sess-1")

    @pytest.mark.asyncio
    async def test_end_reports_other_failures(self, client, controller):
        controller.add("DELETE", SESSION, envelope(code="CODE_AUTH_FAILED", msg="bad token"))

        with pytest.raises(ApiError):
            await client.end_enrollment_session("sess-1")


@pytest.mark.unit
class TestStateMachine:
    @pytest.mark.asyncio
    async def test_lifecycle_to_resolved(self, client, controller):
        open_session_replies(controller)
        controller.add("GET", SESSION, TOKEN_EMPTY, CARD)
        enrollment = NfcEnrollment(client, "reader-1", poll_interval=0)

        assert enrollment.state is EnrollmentState.IDLE
        assert await enrollment.start() == "sess-1"
        assert enrollment.state is EnrollmentState.POLLING

        assert (await enrollment.poll_once()).status is PollStatus.PENDING
        assert enrollment.state is EnrollmentState.POLLING

        assert (await enrollment.poll_once()).status is PollStatus.RESOLVED
        assert enrollment.state is EnrollmentState.RESOLVED
        assert enrollment.card == NfcCard(id="Card 7", token="f2a9c1")
        assert enrollment.poll_count == 2

    @pytest.mark.asyncio
    async def test_no_poll_before_start(self, client):
        enrollment = NfcEnrollment(client, "reader-1")

        with pytest.raises(EnrollmentStateError):
            await enrollment.poll_once()

    @pytest.mark.asyncio
    async def test_no_poll_after_terminal_state(self, client, controller):
        open_session_replies(controller)
        controller.add("GET", SESSION, SESSION_NOT_FOUND)
        enrollment = NfcEnrollment(client, "reader-1")
        await enrollment.start()

        assert (await enrollment.poll_once()).status is PollStatus.CANCELED
        assert enrollment.state is EnrollmentState.CANCELED

        with pytest.raises(EnrollmentStateError):
            await enrollment.poll_once()
        assert len(controller.calls("GET", SESSION)) == 1

    @pytest.mark.asyncio
    async def test_cannot_start_twice(self, client, controller):
        open_session_replies(controller)
        enrollment = NfcEnrollment(client, "reader-1")
        await enrollment.start()

        with pytest.raises(EnrollmentStateError):
            await enrollment.start()

    @pytest.mark.asyncio
    async def test_end_before_start(self, client):
        with pytest.raises(EnrollmentStateError):
            await NfcEnrollment(client, "reader-1").end()

    @pytest.mark.asyncio
    async def test_end_while_polling(self, client, controller):
        open_session_replies(controller)
        controller.add("DELETE", SESSION, envelope())
        enrollment = NfcEnrollment(client, "reader-1")
        await enrollment.start()

        await enrollment.end()

        assert enrollment.state is EnrollmentState.ENDED
        with pytest.raises(EnrollmentStateError):
            await enrollment.poll_once()

    @pytest.mark.asyncio
    async def test_end_after_resolution_keeps_state(self, client, controller):
        open_session_replies(controller)
        controller.add("GET", SESSION, CARD)
        controller.add("DELETE", SESSION, SESSION_NOT_FOUND)
        enrollment = NfcEnrollment(client, "reader-1")
        await enrollment.start()
        await enrollment.poll_once()

        await enrollment.end()

        assert enrollment.state is EnrollmentState.RESOLVED

    @pytest.mark.asyncio
    async def test_failed_state_on_error(self, client, controller):
        open_session_replies(controller)
        controller.add("GET", SESSION, "garbage")
        enrollment = NfcEnrollment(client, "reader-1")
        await enrollment.start()

        with pytest.raises(UnifiAccessError):
            await enrollment.poll_once()

        assert enrollment.state is EnrollmentState.FAILED

    @pytest.mark.asyncio
    async def test_start_without_session_id(self, client, controller):
        controller.add("POST", SESSIONS, envelope({"status": "ok"}))
        enrollment = NfcEnrollment(client, "reader-1")

        with pytest.raises(SchemaMismatch):
            await enrollment.start()

        assert enrollment.state is EnrollmentState.FAILED


@pytest.mark.unit
class TestCancellation:
    @pytest.mark.asyncio
    async def test_session_id_published_before_first_poll(self, client, controller):
        open_session_replies(controller)
        cancellation = EnrollmentCancellation()
        seen_at_first_poll = []

        def first_poll(request):
            seen_at_first_poll.append(cancellation.session_id)
            return TOKEN_EMPTY

        controller.add("GET", SESSION, first_poll, CARD)
        enrollment = NfcEnrollment(client, "reader-1", cancellation=cancellation)
        await enrollment.start()
        await enrollment.poll_once()

        assert seen_at_first_poll == ["sess-1"]
        assert await cancellation.wait_for_session() == "sess-1"

    @pytest.mark.asyncio
    async def test_cancel_request_ends_session(self, client, controller):
        open_session_replies(controller)
        controller.add("GET", SESSION, TOKEN_EMPTY)
        controller.add("DELETE", SESSION, envelope())
        cancellation = EnrollmentCancellation()

        task = asyncio.create_task(client.enroll_nfc_card("reader-1", cancellation))
        assert await cancellation.wait_for_session() == "sess-1"
        cancellation.cancel()

        with pytest.raises(SessionCanceled):
            await task

        assert len(controller.calls("DELETE", SESSION)) == 1
        delete_index = controller.requests.index(controller.calls("DELETE", SESSION)[0])
        assert all(
            request.method != "GET" for request in controller.requests[delete_index:]
        )

    @pytest.mark.asyncio
    async def test_cancel_before_session_opens(self, client, controller):
        open_session_replies(controller)
        controller.add("DELETE", SESSION, envelope())
        cancellation = EnrollmentCancellation()
        cancellation.cancel()

        with pytest.raises(SessionCanceled):
            await client.enroll_nfc_card("reader-1", cancellation)

        assert controller.calls("GET", SESSION) == []
        assert len(controller.calls("DELETE", SESSION)) == 1

    @pytest.mark.asyncio
    async def test_external_end_is_observed_by_next_poll(self, client, controller):
        open_session_replies(controller)
        controller.add("GET", SESSION, TOKEN_EMPTY)
        controller.add("DELETE", SESSION, envelope())
        cancellation = EnrollmentCancellation()

        task = asyncio.create_task(client.enroll_nfc_card("reader-1", cancellation))
        session_id = await cancellation.wait_for_session()
        await client.end_enrollment_session(session_id)
        controller.routes[("GET", SESSION)].clear()
        controller.add("GET", SESSION, SESSION_NOT_FOUND)

        with pytest.raises(SessionCanceled):
            await task

    @pytest.mark.asyncio
    async def test_task_cancellation_closes_session(self, client, controller):
        open_session_replies(controller)
        controller.add("GET", SESSION, TOKEN_EMPTY)
        controller.add("DELETE", SESSION, envelope())
        cancellation = EnrollmentCancellation()

        task = asyncio.create_task(
            client.enroll_nfc_card("reader-1", cancellation, poll_interval=0.01)
        )
        await cancellation.wait_for_session()
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(controller.calls("DELETE", SESSION)) == 1

    def test_session_published_once(self):
        cancellation = EnrollmentCancellation()
        cancellation.publish_session("sess-1")

        with pytest.raises(EnrollmentStateError):
            cancellation.publish_session("sess-2")

    def test_cancel_requested_drains(self):
        cancellation = EnrollmentCancellation()
        assert cancellation.cancel_requested() is False

        cancellation.cancel()
        cancellation.cancel()

        assert cancellation.cancel_requested() is True
        assert cancellation.cancel_requested() is False

    @pytest.mark.asyncio
    async def test_reused_channel_rejected_before_opening(self, client, controller):
        open_session_replies(controller)
        controller.add("GET", SESSION, SESSION_NOT_FOUND)
        cancellation = EnrollmentCancellation()

        with pytest.raises(SessionCanceled):
            await client.enroll_nfc_card("reader-1", cancellation)

        controller.add("POST", SESSIONS, envelope({"session_id": "sess-2"}))
        enrollment = NfcEnrollment(client, "reader-1", cancellation=cancellation)

        with pytest.raises(EnrollmentStateError):
            await enrollment.run()

        assert len(controller.calls("POST", SESSIONS)) == 1
        assert enrollment.state is EnrollmentState.IDLE
        assert enrollment.session_id is None

    @pytest.mark.asyncio
    async def test_publish_failure_closes_opened_session(self, client, controller):
        cancellation = EnrollmentCancellation()

        def open_while_channel_taken(request):
            cancellation.publish_session("sess-other")
            return envelope({"session_id": "sess-1"})

        controller.add("POST", SESSIONS, open_while_channel_taken)
        controller.add("DELETE", SESSION, envelope())
        enrollment = NfcEnrollment(client, "reader-1", cancellation=cancellation)

        with pytest.raises(EnrollmentStateError):
            await enrollment.start()

        assert len(controller.calls("DELETE", SESSION)) == 1
        assert controller.calls("GET", SESSION) == []
        assert enrollment.state is EnrollmentState.FAILED
