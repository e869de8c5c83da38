"""
Log codes for controller communication.
"""

PLATFORM = "platform"

# Transport
TRANSPORT = f"{PLATFORM}.transport"
TRANSPORT_REQUEST = f"{TRANSPORT}.request"
TRANSPORT_REQUEST_BODY = f"{TRANSPORT}.request_body"
TRANSPORT_RESPONSE_RAW = f"{TRANSPORT}.response_raw"
TRANSPORT_FAILED = f"{TRANSPORT}.failed"

# Envelope
ENVELOPE = f"{PLATFORM}.envelope"
ENVELOPE_MALFORMED = f"{ENVELOPE}.malformed"
ENVELOPE_NOT_SUCCESS = f"{ENVELOPE}.not_success"

# Enrollment
ENROLLMENT = "enrollment"
ENROLLMENT_STATE = f"{ENROLLMENT}.state"
ENROLLMENT_SESSION_STARTED = f"{ENROLLMENT}.session_started"
ENROLLMENT_POLL = f"{ENROLLMENT}.poll"
ENROLLMENT_CANCEL_REQUESTED = f"{ENROLLMENT}.cancel_requested"
ENROLLMENT_SESSION_ENDED = f"{ENROLLMENT}.session_ended"
ENROLLMENT_SESSION_ALREADY_CLOSED = f"{ENROLLMENT}.session_already_closed"
ENROLLMENT_END_FAILED = f"{ENROLLMENT}.end_failed"
ENROLLMENT_CARD_RESOLVED = f"{ENROLLMENT}.card_resolved"

# Cards
CARD_UNASSIGNED = "card.unassigned"
CARD_DELETED = "card.deleted"

# Users
USER_REGISTER = "user.register"
