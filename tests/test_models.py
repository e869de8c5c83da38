import pytest

from unifi_access.constants import SYSTEM_LOGS_ENDPOINT
from unifi_access.errors import SchemaMismatch
from unifi_access.models import (
    Device,
    NfcCard,
    SystemLogResponse,
    SystemLogTopic,
    User,
)


@pytest.mark.unit
class TestNfcCard:
    def test_round_trip_keeps_credential(self) -> None:
        card = NfcCard.model_validate(
            {"id": "Card 0042", "token": "5f1a0c", "alias": "ignored"}
        )

        assert card.model_dump() == {"id": "Card 0042", "token": "5f1a0c"}


@pytest.mark.unit
class TestUser:
    def test_defaults(self) -> None:
        user = User.model_validate({"id": "u1", "first_name": "Ada", "last_name": "L"})

        assert user.nfc_cards == []
        assert user.employee_number == ""
        assert user.access_policies is None

    def test_nested_cards(self) -> None:
        user = User.model_validate(
            {
                "id": "u1",
                "first_name": "Ada",
                "last_name": "L",
                "nfc_cards": [{"id": "c", "token": "t"}],
                "status": "ACTIVE",
            }
        )

        assert user.nfc_cards == [NfcCard(id="c", token="t")]


@pytest.mark.unit
class TestDevice:
    def test_type_alias(self) -> None:
        device = Device.model_validate({"id": "d1", "name": "Front", "type": "UA-G2-PRO"})

        assert device.device_type == "UA-G2-PRO"
        assert device.model_dump(by_alias=True)["type"] == "UA-G2-PRO"

    def test_populate_by_name(self) -> None:
        assert Device(id="d1", name="Front", device_type="UAH").device_type == "UAH"


@pytest.mark.unit
class TestSystemLog:
    @pytest.fixture
    def response(self) -> SystemLogResponse:
        return SystemLogResponse.model_validate(
            {
                "hits": [
                    {
                        "@timestamp": "2024-05-01T10:00:00Z",
                        "_id": "evt-1",
                        "_source": {
                            "actor": {"id": "u1", "display_name": "Ada"},
                            "event": {"type": "access.door.unlock", "result": "ACCESS"},
                            "target": [{"type": "door", "id": "door-1"}],
                        },
                    }
                ]
            }
        )

    def test_wrapper_aliases(self, response: SystemLogResponse) -> None:
        hit = response.hits[0]

        assert hit.id == "evt-1"
        assert hit.timestamp == "2024-05-01T10:00:00Z"
        assert hit.source.authentication is None

    def test_extract_nested(self, response: SystemLogResponse) -> None:
        source = response.hits[0].source

        assert source.extract("actor", "display_name") == "Ada"
        assert source.extract("event") == {"type": "access.door.unlock", "result": "ACCESS"}

    def test_extract_missing_key(self, response: SystemLogResponse) -> None:
        with pytest.raises(SchemaMismatch) as exc_info:
            response.hits[0].source.extract("actor", "email")

        assert exc_info.value.path == SYSTEM_LOGS_ENDPOINT
        assert exc_info.value.expected == "object with actor.email"

    def test_extract_through_list(self, response: SystemLogResponse) -> None:
        with pytest.raises(SchemaMismatch):
            response.hits[0].source.extract("target", "id")

    def test_empty_hits(self) -> None:
        assert SystemLogResponse.model_validate({}).hits == []

    def test_topic_values(self) -> None:
        assert SystemLogTopic("door_openings") is SystemLogTopic.DOOR_OPENINGS
