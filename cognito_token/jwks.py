import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import requests
from cachetools import TTLCache
from jose import jwk
from jose.exceptions import JWKError

from .config import CognitoConfig
from .errors import KeyFormatError, KeyNotFoundError, NetworkError, ProtocolError

logger = logging.getLogger(__name__)

JWKSet = List[Dict[str, Any]]


class JWKSCache:
    """Thread-safe, time-bounded key set cache keyed by JWKS URL.

    At most one fetch per URL is in flight: concurrent misses block on the
    URL's lock and reuse whatever the first caller stored.
    """

    def __init__(self, ttl: int, maxsize: int = 16):
        self._entries: TTLCache[str, JWKSet] = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = threading.Lock()
        self._url_locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, url: str) -> threading.Lock:
        with self._lock:
            return self._url_locks.setdefault(url, threading.Lock())

    def peek(self, url: str) -> Optional[JWKSet]:
        with self._lock:
            return self._entries.get(url)

    def get(self, url: str, loader: Callable[[], JWKSet], stale: Optional[JWKSet] = None) -> JWKSet:
        """Return the cached set for ``url``, calling ``loader`` on a miss.

        ``stale`` is a set the caller already saw and rejected (e.g. it lacked
        a kid). It is refreshed unless another thread replaced it meanwhile.
        """
        with self._lock_for(url):
            current = self.peek(url)
            if current is not None and current is not stale:
                return current
            keys = loader()
            with self._lock:
                self._entries[url] = keys
            return keys

    def clear(self):
        with self._lock:
            self._entries.clear()


class KeyResolver:
    """Finds the public key that signed a token in the user pool JWKS."""

    def __init__(self, config: CognitoConfig, session=None, cache: Optional[JWKSCache] = None):
        self.config = config
        self._session = session or requests
        if cache is None and config.jwks_cache_ttl > 0:
            cache = JWKSCache(ttl=config.jwks_cache_ttl)
        self.cache = cache

    def fetch_keys(self) -> JWKSet:
        """Download the key set. No caching."""
        url = self.config.jwks_url
        try:
            logger.info(f"Fetching JWKs from: {url}")
            response = self._session.get(url, timeout=self.config.http_timeout)
            if response.status_code == 404:
                logger.error("JWKs URL returned 404 - User Pool might not exist or region/ID is incorrect")
                logger.error(f"  - region: {self.config.region}")
                logger.error(f"  - user pool id: {self.config.user_pool_id}")
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch JWKs: {e}")
            raise NetworkError(f"Failed to fetch JWKs: {e}", url=url) from e

        try:
            document = response.json()
        except ValueError as e:
            raise ProtocolError(f"JWKs response from {url} is not valid JSON") from e
        keys = document.get("keys") if isinstance(document, dict) else None
        if not isinstance(keys, list):
            raise ProtocolError(f"JWKs response from {url} has no 'keys' list")

        logger.info(f"JWKs fetched successfully - found {len(keys)} keys")
        return keys

    def _keys(self, stale: Optional[JWKSet] = None) -> JWKSet:
        if self.cache is None:
            return self.fetch_keys()
        return self.cache.get(self.config.jwks_url, self.fetch_keys, stale=stale)

    def find_key(self, kid: Optional[str]) -> Dict[str, Any]:
        """Return the first JWK whose kid matches."""
        if not kid:
            raise KeyNotFoundError("Token missing 'kid' in header", kid=kid)

        keys = self._keys()
        key = _match(keys, kid)
        if key is None and self.cache is not None:
            # the pool may have rotated its keys since the set was cached
            logger.info(f"kid {kid} not in cached JWKs, refreshing")
            keys = self._keys(stale=keys)
            key = _match(keys, kid)

        if key is None:
            logger.error(f"No matching key found for kid: {kid}")
            logger.error(f"Available keys: {[k.get('kid') for k in keys if isinstance(k, dict)]}")
            raise KeyNotFoundError(f"Public key not found for kid {kid}", kid=kid)

        logger.info(f"Found matching JWK key: {kid}")
        return key

    def resolve(self, kid: Optional[str]) -> str:
        """Return the matching key as a PEM encoded public key."""
        key = self.find_key(kid)
        try:
            pem = jwk.construct(key, algorithm=key.get("alg", "RS256")).to_pem()
        except (JWKError, AttributeError, KeyError, TypeError, ValueError) as e:
            raise KeyFormatError(f"Could not convert JWK {kid} to PEM: {e}", kid=kid) from e
        return pem.decode("utf-8") if isinstance(pem, bytes) else pem


def _match(keys: JWKSet, kid: str) -> Optional[Dict[str, Any]]:
    for key in keys:
        if isinstance(key, dict) and key.get("kid") == kid:
            return key
    return None
