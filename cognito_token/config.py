import logging
import os
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def _env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


class CognitoConfig(BaseModel):
    """Settings for one Cognito user pool and app client.

    Passed explicitly to every component; nothing here reads the process
    environment except ``from_env``.
    """

    model_config = ConfigDict(frozen=True)

    region: str
    user_pool_id: str
    client_id: str
    client_secret: Optional[str] = None
    domain: Optional[str] = None
    redirect_uri: Optional[str] = None
    display_timezone: str = "Asia/Singapore"
    http_timeout: float = Field(default=10.0, gt=0)
    # 0 disables the JWKS cache: keys are fetched for every validation
    jwks_cache_ttl: int = Field(default=0, ge=0)

    @field_validator("display_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {value!r}") from e
        return value

    @property
    def issuer(self) -> str:
        return f"https://cognito-idp.{self.region}.amazonaws.com/{self.user_pool_id}"

    @property
    def jwks_url(self) -> str:
        return f"{self.issuer}/.well-known/jwks.json"

    @property
    def token_endpoint(self) -> str:
        if not self.domain:
            raise ConfigurationError("Cognito domain is not configured")
        domain = self.domain.rstrip("/")
        if not domain.startswith(("https://", "http://")):
            domain = f"https://{domain}"
        return f"{domain}/oauth2/token"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "CognitoConfig":
        """Build a config from environment variables (and a .env file if present)"""
        load_dotenv(dotenv_path)

        region = _env("AWS_COGNITO_REGION", "AWS_REGION", "AWS_DEFAULT_REGION")
        user_pool_id = _env("AWS_COGNITO_USER_POOL_ID", "COGNITO_USER_POOL_ID")
        client_id = _env("AWS_COGNITO_CLIENT_ID", "COGNITO_CLIENT_ID")
        client_secret = _env("AWS_COGNITO_CLIENT_SECRET", "COGNITO_CLIENT_SECRET")

        logger.debug("=== Cognito configuration ===")
        logger.debug(f"AWS_COGNITO_REGION: {region}")
        logger.debug(f"AWS_COGNITO_USER_POOL_ID: {user_pool_id}")
        logger.debug(f"AWS_COGNITO_CLIENT_ID: {client_id}")
        logger.debug(f"AWS_COGNITO_CLIENT_SECRET: {'configured' if client_secret else 'not configured'}")

        missing = [
            name
            for name, value in (
                ("AWS_COGNITO_REGION", region),
                ("AWS_COGNITO_USER_POOL_ID", user_pool_id),
                ("AWS_COGNITO_CLIENT_ID", client_id),
            )
            if not value
        ]
        if missing:
            logger.error(f"Missing Cognito settings: {', '.join(missing)}")
            raise ConfigurationError(f"{', '.join(missing)} must be set in environment variables")

        values = {
            "region": region,
            "user_pool_id": user_pool_id,
            "client_id": client_id,
            "client_secret": client_secret,
            "domain": _env("AWS_COGNITO_DOMAIN", "COGNITO_DOMAIN"),
            "redirect_uri": _env("AWS_COGNITO_REDIRECT_URI", "APP_URL"),
        }
        timezone = _env("AWS_COGNITO_TIMEZONE")
        if timezone:
            values["display_timezone"] = timezone
        try:
            timeout = _env("AWS_COGNITO_HTTP_TIMEOUT")
            if timeout:
                values["http_timeout"] = float(timeout)
            cache_ttl = _env("AWS_COGNITO_JWKS_CACHE_TTL")
            if cache_ttl:
                values["jwks_cache_ttl"] = int(cache_ttl)
            return cls(**values)
        except ValueError as e:
            # pydantic's ValidationError is a ValueError too
            raise ConfigurationError(f"Invalid Cognito configuration: {e}") from e
