from typing import Optional

from unifi_access.constants import ERROR_SNIPPET_LENGTH


class UnifiAccessError(Exception):
    """
    Base error for every failure raised by the UniFi Access client.

    Args:
        message (str): The error message.
    """
    def __init__(self, message: str = "An error occurred while talking to the UniFi Access controller."):
        self.message = message
        super().__init__(self.message)


class TransportError(UnifiAccessError):
    """
    Error raised when a request could not be delivered or its body not read.

    Args:
        message (str): The error message.
        reason (Optional[str]): Additional detail about the failure.
    """
    def __init__(self, message: str = "Transport error: Unable to complete the request to the controller.",
                 reason: Optional[str] = None):
        self.reason = reason
        if reason:
            message += f"\nDetails: {reason}"
        super().__init__(message)


class NetworkConnectionError(TransportError):
    """
    Error raised when the controller cannot be reached.
    """
    def __init__(self, reason: Optional[str] = None,
                 message: str = "Network connection error: Unable to reach the controller.\n"
                                "The API is only available on the controller's LAN, check the host and port."):
        super().__init__(message=message, reason=reason)


class RequestTimeoutError(TransportError):
    """
    Error raised when the controller does not answer in time.
    """
    def __init__(self, reason: Optional[str] = None,
                 message: str = "Request timed out: The controller did not respond in time."):
        super().__init__(message=message, reason=reason)


class SSLCertificateError(TransportError):
    """
    Error raised when the controller certificate is rejected.
    """
    def __init__(self, reason: Optional[str] = None,
                 message: str = "TLS error: The controller certificate could not be verified.\n"
                                "Use TLS mode 'device' with the controller certificate to trust it explicitly."):
        super().__init__(message=message, reason=reason)


class ResponseEncodingError(TransportError):
    """
    Error raised when the response body is not valid UTF-8.
    """
    def __init__(self, reason: Optional[str] = None,
                 message: str = "Encoding error: The controller response is not valid UTF-8."):
        super().__init__(message=message, reason=reason)


class MalformedResponse(UnifiAccessError):
    """
    Error raised when a response matches neither the envelope nor a sentinel.

    Args:
        raw (str): The offending raw body, truncated for the message.
        reason (Optional[str]): The reason for the error.
    """
    def __init__(self, raw: str = "", reason: Optional[str] = None,
                 message: str = "Malformed response from controller: {snippet!r}"):
        self.snippet = raw[:ERROR_SNIPPET_LENGTH]
        self.reason = reason
        self.message = message.format(snippet=self.snippet)
        if reason:
            self.message += f"\nDetails: {reason}"
        super().__init__(self.message)


class ApiError(UnifiAccessError):
    """
    Error raised when the envelope reports a non-success code.

    Args:
        path (str): The API path that was requested.
        message (str): The vendor provided message.
        code (Optional[str]): The vendor status code.
    """
    def __init__(self, path: str, message: str, code: Optional[str] = None):
        self.path = path
        self.vendor_message = message
        self.code = code
        super().__init__(f"Failed request to {path}: {message}")


class MissingData(UnifiAccessError):
    """
    Error raised when a successful envelope carries no payload to parse.
    """
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No data found in response from {path}")


class SchemaMismatch(UnifiAccessError):
    """
    Error raised when a payload does not have the shape an operation expects.

    Args:
        path (str): The API path that was requested.
        expected (str): A description of the expected shape.
        reason (Optional[str]): The validation detail.
    """
    def __init__(self, path: str, expected: str, reason: Optional[str] = None):
        self.path = path
        self.expected = expected
        self.reason = reason
        message = f"Unexpected payload from {path}, expected {expected}"
        if reason:
            message += f"\nDetails: {reason}"
        super().__init__(message)


class SessionCanceled(UnifiAccessError):
    """
    Raised when an enrollment session expired or was closed before a card
    was scanned. This is an expected outcome; callers usually restart
    enrollment or give up quietly.
    """
    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id
        super().__init__("Session has been canceled")


class EnrollmentStateError(UnifiAccessError):
    """
    Raised when an enrollment operation is used out of lifecycle order.
    """
