import logging
from functools import lru_cache
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, JsonValue, TypeAdapter, ValidationError

from unifi_access.constants import SUCCESS_CODE
from unifi_access.errors import MalformedResponse, SchemaMismatch
from .log_codes import ENVELOPE_MALFORMED

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Envelope(BaseModel):
    """
    The wrapper the controller puts around every standard JSON response.

    ``code`` is the vendor status string, not the HTTP status.
    """

    code: str
    msg: str
    data: Optional[JsonValue] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def is_success(self) -> bool:
        return self.code == SUCCESS_CODE


def decode_envelope(raw: str) -> Envelope:
    """
    Parse a raw response body into an Envelope.

    The status code is returned as-is; deciding what a non-success code
    means is left to the caller.

    Args:
        raw (str): The raw response body.

    Returns:
        Envelope: The decoded envelope.

    Raises:
        MalformedResponse: If the body is not JSON or lacks code/msg.
    """
    try:
        return Envelope.model_validate_json(raw)
    except ValidationError as e:
        logger.debug(ENVELOPE_MALFORMED, extra={"error_count": e.error_count()})
        raise MalformedResponse(raw=raw, reason=_summarize(e)) from e


def validate_payload(shape: Type[T], payload: Any, path: str) -> T:
    """
    Validate an envelope payload against ``shape``.

    Args:
        shape (Type[T]): Anything a pydantic TypeAdapter accepts.
        payload (Any): The envelope's data.
        path (str): The API path, for error reporting.

    Raises:
        SchemaMismatch: If the payload does not match.
    """
    try:
        return _type_adapter(shape).validate_python(payload)
    except ValidationError as e:
        raise SchemaMismatch(
            path=path, expected=_describe(shape), reason=_summarize(e)
        ) from e


@lru_cache(maxsize=None)
def _type_adapter(shape: Any) -> TypeAdapter:
    return TypeAdapter(shape)


def _describe(shape: Any) -> str:
    return getattr(shape, "__name__", None) or repr(shape)


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(loc) for loc in item["loc"]) or "body"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)
