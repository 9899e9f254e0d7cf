import base64
from typing import Any, Dict, List, Optional

import pytest
import requests
from jose import jwt

from cognito_token import CognitoConfig, KeyResolver, TokenValidator

REGION = "ap-southeast-1"
USER_POOL_ID = "ap-southeast-1_AbCdEfGhI"
CLIENT_ID = "4h5j6k7l8m9n0p1q2r3s4t5u6v"
ISSUER = f"https://cognito-idp.{REGION}.amazonaws.com/{USER_POOL_ID}"
KID = "kid-valid"
NOW = 1_700_000_000

ENV_VARS = (
    "AWS_COGNITO_REGION",
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
    "AWS_COGNITO_USER_POOL_ID",
    "COGNITO_USER_POOL_ID",
    "AWS_COGNITO_CLIENT_ID",
    "COGNITO_CLIENT_ID",
    "AWS_COGNITO_CLIENT_SECRET",
    "COGNITO_CLIENT_SECRET",
    "AWS_COGNITO_DOMAIN",
    "COGNITO_DOMAIN",
    "AWS_COGNITO_REDIRECT_URI",
    "APP_URL",
    "AWS_COGNITO_TIMEZONE",
    "AWS_COGNITO_HTTP_TIMEOUT",
    "AWS_COGNITO_JWKS_CACHE_TTL",
)


def _generate_rsa_keypair():
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_numbers = private_key.public_key().public_numbers()
    return private_pem, public_numbers.n, public_numbers.e


def _b64url_uint(data: int) -> str:
    length = (data.bit_length() + 7) // 8 or 1
    raw = data.to_bytes(length, byteorder="big")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error", response=self)


class FakeSession:
    """Stands in for ``requests``: replays responses in order, the last one forever."""

    def __init__(self, *responses, error: Optional[Exception] = None):
        self.responses: List[FakeResponse] = list(responses)
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def get(self, url, timeout=None):
        self.calls.append({"url": url, "timeout": timeout})
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


@pytest.fixture(scope="session")
def rsa_key():
    private_pem, n_int, e_int = _generate_rsa_keypair()
    public_jwk = {
        "alg": "RS256",
        "e": _b64url_uint(e_int),
        "kid": KID,
        "kty": "RSA",
        "n": _b64url_uint(n_int),
        "use": "sig",
    }
    return private_pem, public_jwk


@pytest.fixture
def jwks(rsa_key):
    _, public_jwk = rsa_key
    other = dict(public_jwk, kid="kid-other")
    return {"keys": [other, public_jwk]}


@pytest.fixture
def session(jwks):
    return FakeSession(FakeResponse(jwks))


@pytest.fixture
def config():
    return CognitoConfig(
        region=REGION,
        user_pool_id=USER_POOL_ID,
        client_id=CLIENT_ID,
        client_secret="s3cr3t",
        domain="https://auth.example.com",
        redirect_uri="https://app.example.com/callback",
    )


@pytest.fixture
def mint(rsa_key):
    private_pem, _ = rsa_key

    def _mint(claims: Dict[str, Any], kid: str = KID) -> str:
        return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": kid})

    return _mint


@pytest.fixture
def cognito_claims():
    return {
        "sub": "7d9f2c1e-0b3a-4c5d-8e6f-123456789abc",
        "jti": "0f1e2d3c-4b5a-6978-8796-a5b4c3d2e1f0",
        "aud": CLIENT_ID,
        "iss": ISSUER,
        "token_use": "id",
        "iat": NOW - 60,
        "exp": NOW + 3600,
        "email": "jane@example.com",
        "cognito:username": "jane",
    }


@pytest.fixture
def validator(config, session):
    return TokenValidator(config, resolver=KeyResolver(config, session=session), clock=lambda: NOW)


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so teardown also removes anything load_dotenv adds
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch
