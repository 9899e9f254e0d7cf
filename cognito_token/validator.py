import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from jose import jwt, JWTError
from jose.utils import base64url_decode
from pydantic import ValidationError

from .config import CognitoConfig
from .errors import ClaimError, MalformedTokenError, SignatureError
from .jwks import KeyResolver
from .schema import Claims, ValidationResult

logger = logging.getLogger(__name__)

WRONG_SEGMENTS = "Token has wrong number of segments"
BAD_ENCODING = "Decoder has problem with Token encoding"

# Claims are checked by the rules below, jose only checks the signature
_SIGNATURE_ONLY = {
    "verify_signature": True,
    "verify_aud": False,
    "verify_iat": False,
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iss": False,
    "verify_sub": False,
    "verify_jti": False,
    "verify_at_hash": False,
}


def _decode_segment(segment: str) -> Optional[Dict[str, Any]]:
    """base64url + JSON decode one segment of a token that isn't well formed."""
    try:
        data = json.loads(base64url_decode(segment.encode("ascii")).decode("utf-8"))
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _decode_unverified(token: str) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
    """Header and payload of a three segment token, None for a part that won't decode."""
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        header = None
    try:
        payload = jwt.get_unverified_claims(token)
    except JWTError:
        payload = None
    return header, payload


def _to_claims(payload: Optional[Dict[str, Any]]) -> Tuple[Claims, List[ClaimError]]:
    """Typed claims from a decoded payload.

    A claim with the wrong JSON type is left out and reported; the rest of the
    payload is kept.
    """
    if payload is None:
        return Claims(), []
    try:
        return Claims.model_validate(payload), []
    except ValidationError as e:
        bad = sorted({str(error["loc"][0]) for error in e.errors() if error["loc"]} & set(Claims.model_fields))
    logger.warning(f"Token claims with the wrong type: {', '.join(bad)}")
    kept = {name: value for name, value in payload.items() if name not in bad}
    failures = [ClaimError(name, f"Token claim '{name}' has the wrong type") for name in bad]
    return Claims.model_validate(kept), failures


def _check_not_before(claims: Claims, config: CognitoConfig, now: int) -> Optional[ClaimError]:
    if claims.nbf is not None and claims.nbf > now:
        return ClaimError("nbf", "Token is not yet valid")
    return None


def _check_issued_at(claims: Claims, config: CognitoConfig, now: int) -> Optional[ClaimError]:
    if claims.iat is not None and claims.iat > now:
        return ClaimError("iat", "Token was issued in the future")
    return None


def _check_expiry(claims: Claims, config: CognitoConfig, now: int) -> Optional[ClaimError]:
    if claims.exp is not None and now >= claims.exp:
        return ClaimError("exp", "Token has expired")
    return None


def _check_audience(claims: Claims, config: CognitoConfig, now: int) -> Optional[ClaimError]:
    if claims.aud is None:
        return None
    audiences = claims.aud if isinstance(claims.aud, list) else [claims.aud]
    if config.client_id not in audiences:
        return ClaimError("aud", "Token audience does not match the client id")
    return None


def _check_issuer(claims: Claims, config: CognitoConfig, now: int) -> Optional[ClaimError]:
    if claims.iss is not None and claims.iss != config.issuer:
        return ClaimError("iss", "Token issuer does not match the user pool")
    return None


def _check_token_use(claims: Claims, config: CognitoConfig, now: int) -> Optional[ClaimError]:
    if claims.token_use is not None and claims.token_use != "id":
        return ClaimError("token_use", "Token is not an id token")
    return None


CLAIM_RULES = (
    _check_not_before,
    _check_issued_at,
    _check_expiry,
    _check_audience,
    _check_issuer,
    _check_token_use,
)


def check_claims(claims: Claims, config: CognitoConfig, now: int) -> List[ClaimError]:
    """Run every claim rule and return all failures, in rule order."""
    failures = []
    for rule in CLAIM_RULES:
        failure = rule(claims, config, now)
        if failure is not None:
            failures.append(failure)
    return failures


class TokenValidator:
    """Verifies Cognito ID tokens and applies the claim rules.

    In the default lenient mode a structurally broken token still produces a
    ``ValidationResult`` (invalid, with whatever claims could be decoded).
    With ``strict=True`` the same tokens raise ``MalformedTokenError``.
    Signature failures raise ``SignatureError`` in both modes.
    """

    def __init__(
        self,
        config: CognitoConfig,
        resolver: Optional[KeyResolver] = None,
        clock: Callable[[], float] = time.time,
        strict: bool = False,
    ):
        self.config = config
        self.resolver = resolver or KeyResolver(config)
        self.clock = clock
        self.strict = strict

    def validate(self, token: str) -> ValidationResult:
        now = int(self.clock())
        logger.info(f"Starting JWT verification (token length: {len(token)})")

        segments = token.split(".")
        structural_errors = []
        if len(segments) != 3:
            if self.strict:
                raise MalformedTokenError(WRONG_SEGMENTS)
            structural_errors.append(WRONG_SEGMENTS)

        if structural_errors:
            header = _decode_segment(segments[0])
            payload = _decode_segment(segments[1]) if len(segments) > 1 else None
        else:
            header, payload = _decode_unverified(token)
        if header is None or payload is None:
            if self.strict:
                raise MalformedTokenError(BAD_ENCODING)
            structural_errors.append(BAD_ENCODING)

        # signature first: nothing about the claims is trusted before this
        if not structural_errors:
            self._verify_signature(token, header)

        claims, type_failures = _to_claims(payload)
        failures = check_claims(claims, self.config, now)
        failed = {failure.claim for failure in failures}
        errors = (
            tuple(structural_errors)
            + tuple(str(failure) for failure in type_failures)
            + tuple(str(failure) for failure in failures)
        )

        result = ValidationResult(
            token=token,
            claims=claims,
            valid=not errors,
            errors=errors,
            expecting="nbf" in failed,
            incorrect="iat" in failed,
            expired="exp" in failed,
            error=bool(structural_errors),
        )
        if result.valid:
            logger.info(f"Token verified successfully! Sub: {claims.sub or 'N/A'}")
        else:
            logger.warning(f"Token is not valid: {'; '.join(errors)}")
        return result

    def _verify_signature(self, token: str, header: Dict[str, Any]):
        kid = header.get("kid")
        logger.info(f"Token header - kid: {kid}, alg: {header.get('alg')}")
        pem = self.resolver.resolve(kid)
        try:
            jwt.decode(token, pem, algorithms=["RS256"], options=_SIGNATURE_ONLY)
        except JWTError as e:
            logger.error(f"JWT verification failed: {e}")
            raise SignatureError(f"Token signature verification failed: {e}") from e
