"""FastAPI dependencies that authenticate requests with a Cognito ID token.

    bearer = CognitoBearer(TokenValidator(config))

    @app.get("/me")
    def me(user: CognitoToken = Depends(bearer)):
        return user.properties()
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .claims import CognitoToken
from .errors import CognitoTokenError, ConfigurationError, NetworkError, ProtocolError
from .validator import TokenValidator

logger = logging.getLogger(__name__)

security = HTTPBearer()


class CognitoBearer:
    def __init__(self, validator: TokenValidator):
        self.validator = validator

    def authenticate(self, token: str) -> CognitoToken:
        try:
            result = self.validator.validate(token)
        except (NetworkError, ProtocolError, ConfigurationError) as e:
            logger.error(f"Cognito unavailable while validating token: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to fetch JWKs: {e}")
        except CognitoTokenError as e:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}")

        if not result.valid:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token: {'; '.join(result.errors)}",
            )
        return CognitoToken(result, timezone=self.validator.config.display_timezone)

    def __call__(self, credentials: HTTPAuthorizationCredentials = Depends(security)) -> CognitoToken:
        logger.info("Authenticating request with Cognito bearer token")
        return self.authenticate(credentials.credentials)


class OptionalCognitoBearer(CognitoBearer):
    """Like ``CognitoBearer`` but yields None instead of rejecting the request"""

    def __call__(self, request: Request) -> Optional[CognitoToken]:
        authorization = request.headers.get("Authorization", "")
        if not authorization.startswith("Bearer "):
            logger.info("No authorization header or invalid format")
            return None
        try:
            return self.authenticate(authorization.split(" ", 1)[1])
        except HTTPException as e:
            logger.warning(f"Optional JWT validation failed: {e.detail}")
            return None
