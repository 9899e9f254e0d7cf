# Validation of AWS Cognito ID tokens. Signature checks and JWK handling are
# done by python-jose; this package wires the pieces together.
from .claims import CognitoToken
from .config import CognitoConfig
from .errors import (
    ClaimError,
    CognitoTokenError,
    ConfigurationError,
    KeyFormatError,
    KeyNotFoundError,
    KeyResolutionError,
    MalformedTokenError,
    NetworkError,
    ProtocolError,
    SignatureError,
)
from .fetcher import TokenFetcher
from .jwks import JWKSCache, KeyResolver
from .schema import Claims, ValidationResult
from .validator import TokenValidator

__version__ = "1.0.0"
