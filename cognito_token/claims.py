from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from .config import CognitoConfig
from .fetcher import TokenFetcher
from .schema import Claims, ValidationResult
from .validator import TokenValidator


class CognitoToken:
    """Read-only view over a validated Cognito ID token.

    Build one with ``from_token`` when the caller already holds the token, or
    ``from_auth_code`` to exchange an authorization code first.
    """

    def __init__(self, result: ValidationResult, timezone: str = "Asia/Singapore", auth_code: Optional[str] = None):
        self._result = result
        self._tz = ZoneInfo(timezone)
        self._auth_code = auth_code

    @classmethod
    def from_token(
        cls,
        token: str,
        config: CognitoConfig,
        validator: Optional[TokenValidator] = None,
    ) -> "CognitoToken":
        validator = validator or TokenValidator(config)
        return cls(validator.validate(token), timezone=config.display_timezone)

    @classmethod
    def from_auth_code(
        cls,
        code: str,
        config: CognitoConfig,
        fetcher: Optional[TokenFetcher] = None,
        validator: Optional[TokenValidator] = None,
    ) -> "CognitoToken":
        token = (fetcher or TokenFetcher(config)).fetch(code)
        validator = validator or TokenValidator(config)
        return cls(validator.validate(token), timezone=config.display_timezone, auth_code=code)

    @property
    def token(self) -> str:
        return self._result.token

    @property
    def auth_code(self) -> Optional[str]:
        return self._auth_code

    @property
    def result(self) -> ValidationResult:
        return self._result

    @property
    def claims(self) -> Dict[str, Any]:
        return self._claims.as_dict()

    def lookup(self, name: str) -> Optional[Any]:
        return self._claims.lookup(name)

    @property
    def _claims(self) -> Claims:
        return self._result.claims

    def _format(self, timestamp) -> Optional[str]:
        if timestamp is None:
            return None
        return datetime.fromtimestamp(timestamp, tz=self._tz).strftime("%Y-%m-%d %H:%M:%S")

    @property
    def token_id(self) -> Optional[str]:
        return self._claims.jti

    @property
    def user_id(self) -> Optional[str]:
        return self._claims.sub

    @property
    def start_at_unix(self):
        return self._claims.nbf

    @property
    def start_at(self) -> Optional[str]:
        return self._format(self._claims.nbf)

    @property
    def created_at_unix(self):
        return self._claims.iat

    @property
    def created_at(self) -> Optional[str]:
        return self._format(self._claims.iat)

    @property
    def expires_at_unix(self):
        return self._claims.exp

    @property
    def expires_at(self) -> Optional[str]:
        return self._format(self._claims.exp)

    @property
    def expecting(self) -> bool:
        return self._result.expecting

    @property
    def incorrect(self) -> bool:
        return self._result.incorrect

    @property
    def expired(self) -> bool:
        return self._result.expired

    @property
    def error(self) -> bool:
        return self._result.error

    @property
    def errors(self) -> Tuple[str, ...]:
        return self._result.errors

    @property
    def valid(self) -> bool:
        return self._result.valid

    def properties(self) -> Dict[str, Any]:
        """Every derived property as a plain dict"""
        return {
            "token_id": self.token_id,
            "user_id": self.user_id,
            "expecting": self.expecting,
            "start_at_unix": self.start_at_unix,
            "start_at": self.start_at,
            "incorrect": self.incorrect,
            "created_at_unix": self.created_at_unix,
            "created_at": self.created_at,
            "expired": self.expired,
            "expires_at_unix": self.expires_at_unix,
            "expires_at": self.expires_at,
            "error": self.error,
            "errors": list(self.errors),
            "valid": self.valid,
        }

    def __repr__(self):
        return f"CognitoToken(user_id={self.user_id!r}, valid={self.valid})"
