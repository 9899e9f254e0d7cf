from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

Timestamp = Union[int, float]


class Claims(BaseModel):
    """Decoded token payload. Claims without a field here are kept as extras."""

    model_config = ConfigDict(frozen=True, extra="allow")

    jti: Optional[str] = None
    sub: Optional[str] = None
    nbf: Optional[Timestamp] = None
    iat: Optional[Timestamp] = None
    exp: Optional[Timestamp] = None
    aud: Optional[Union[str, List[str]]] = None
    iss: Optional[str] = None
    token_use: Optional[str] = None

    def lookup(self, name: str) -> Optional[Any]:
        """Value of claim ``name``, or None when the token doesn't carry it."""
        return self.as_dict().get(name)

    def as_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    claims: Claims = Claims()
    valid: bool
    errors: Tuple[str, ...] = ()
    # nbf in the future
    expecting: bool = False
    # iat in the future
    incorrect: bool = False
    expired: bool = False
    # structural problem: segment count or encoding
    error: bool = False
