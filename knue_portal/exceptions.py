"""Custom exception classes for the KNUE portal bridge"""


class PortalError(Exception):
    """Base exception for portal bridge errors"""

    category = "PortalError"


class UpstreamUnavailableError(PortalError):
    """Raised when the portal cannot be reached (network error or timeout)"""

    category = "UpstreamUnavailable"


class AuthenticationError(PortalError):
    """Raised when the portal rejects a login or returns no session cookies"""

    category = "AuthenticationError"


class TokenError(PortalError):
    """Base class for bearer credential verification failures"""

    category = "TokenError"


class TokenInvalidError(TokenError):
    """Raised when a bearer credential fails signature verification"""

    category = "TokenInvalid"


class TokenExpiredError(TokenError):
    """Raised when a bearer credential is correctly signed but past its expiry

    Clients should run the refresh flow rather than a full re-login.
    """

    category = "TokenExpired"


class TokenRevokedError(TokenError):
    """Raised when a valid, unexpired bearer credential has no live session entry"""

    category = "TokenRevoked"


class RefreshError(PortalError):
    """Base class for refresh flow failures"""

    category = "RefreshError"


class RefreshNotFoundError(RefreshError):
    """Raised when a refresh handle is unknown"""

    category = "RefreshNotFound"


class RefreshExpiredError(RefreshError):
    """Raised when a refresh handle is past its absolute expiry"""

    category = "RefreshExpired"


class MalformedInputError(PortalError):
    """Raised when upstream HTML is empty or not markup at all"""

    category = "MalformedInput"


class ValidationError(PortalError):
    """Raised for a bad caller-supplied parameter (cafeteria kind, weekday)"""

    category = "ValidationError"
