from typing import Optional


class CognitoTokenError(Exception):
    """Base class for every error raised by this package"""


class ConfigurationError(CognitoTokenError):
    """Required Cognito settings are missing or invalid"""


class NetworkError(CognitoTokenError):
    """The identity provider could not be reached"""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class ProtocolError(CognitoTokenError):
    """The identity provider answered with something we can't use"""


class KeyResolutionError(CognitoTokenError):
    def __init__(self, message: str, kid: Optional[str] = None):
        super().__init__(message)
        self.kid = kid


class KeyNotFoundError(KeyResolutionError):
    """No key in the JWKS matches the token's kid"""


class KeyFormatError(KeyResolutionError):
    """The matched JWK could not be turned into a PEM public key"""


class SignatureError(CognitoTokenError):
    """RS256 signature verification failed. Always fatal."""


class MalformedTokenError(CognitoTokenError):
    """Raised in strict mode when the token structure can't be decoded"""


class ClaimError(CognitoTokenError):
    """A claim rule failed.

    Never raised by the validator itself: the message is collected into
    ``ValidationResult.errors``.
    """

    def __init__(self, claim: str, message: str):
        super().__init__(message)
        self.claim = claim
