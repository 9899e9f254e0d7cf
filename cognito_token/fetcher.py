import logging
from typing import Optional

import httpx

from .config import CognitoConfig
from .errors import ConfigurationError, NetworkError, ProtocolError

logger = logging.getLogger(__name__)


class TokenFetcher:
    """Exchanges an OAuth2 authorization code for a Cognito ID token.

    One POST to the hosted UI token endpoint, no retries. ``transport`` lets
    callers plug in an ``httpx`` transport (proxies, tests).
    """

    def __init__(self, config: CognitoConfig, transport: Optional[httpx.BaseTransport] = None):
        self.config = config
        self._transport = transport

    def fetch(self, code: str) -> str:
        config = self.config
        if not (config.client_secret and config.redirect_uri):
            raise ConfigurationError("Cognito client secret and redirect URI must be configured")
        url = config.token_endpoint

        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": config.client_id,
            "redirect_uri": config.redirect_uri,
        }
        try:
            logger.info(f"Exchanging authorization code at: {url}")
            with httpx.Client(timeout=config.http_timeout, transport=self._transport) as client:
                r = client.post(
                    url,
                    data=data,
                    auth=(config.client_id, config.client_secret),
                    headers={"Accept": "application/json"},
                )
        except httpx.RequestError as e:
            logger.error(f"Failed to reach token endpoint: {e}")
            raise NetworkError(f"Failed to reach token endpoint: {e}", url=url) from e

        try:
            body = r.json()
        except ValueError:
            body = None

        if r.is_error:
            reason = body.get("error") if isinstance(body, dict) else None
            logger.error(f"Token endpoint returned {r.status_code}: {reason or r.text}")
            raise ProtocolError(f"Token endpoint returned {r.status_code}: {reason or 'no error given'}")
        if not isinstance(body, dict):
            raise ProtocolError("Token endpoint response is not a JSON object")

        id_token = body.get("id_token")
        if not isinstance(id_token, str) or not id_token:
            raise ProtocolError("Token endpoint response has no id_token")
        logger.info("Authorization code exchanged for id_token")
        return id_token
