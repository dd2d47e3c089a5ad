import hashlib
import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

from unimark_admin.core.errors import UnauthorizedError, UpstreamError
from unimark_admin.identity.keycloak_client import KeycloakClient

logger = logging.getLogger(__name__)


class TokenCache:
    """Short TTL cache of introspected callers, keyed by token hash.

    Owned by the application (app.state), never a module global.
    """

    def __init__(self, ttl_sec: int = 60, max_size: int = 500):
        self.ttl_sec = ttl_sec
        self.max_size = max_size
        self._entries: Dict[str, Tuple[Dict[str, Any], float]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key_for(token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()

    def get(self, token: str) -> Optional[Dict[str, Any]]:
        key = self.key_for(token)
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            user_data, expiry = entry
            if now >= expiry:
                del self._entries[key]
                return None
            return user_data

    def set(self, token: str, user_data: Dict[str, Any]) -> None:
        with self._lock:
            if len(self._entries) >= self.max_size:
                return
            self._entries[self.key_for(token)] = (user_data, time.monotonic() + self.ttl_sec)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class AuthService:
    def __init__(self, identity_client: KeycloakClient, cache: TokenCache):
        self.identity_client = identity_client
        self.cache = cache

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Resolve the caller behind a bearer token via Keycloak introspection."""
        cached = self.cache.get(token)
        if cached is not None:
            return cached

        try:
            claims = self.identity_client.introspect_token(token)
        except UpstreamError:
            logger.warning("Token introspection unavailable")
            raise UnauthorizedError("Authentication failed")

        if not claims.get("active"):
            raise UnauthorizedError("Invalid or expired token")

        user_data = {
            "id": claims.get("sub"),
            "username": claims.get("preferred_username") or claims.get("username"),
            "email": claims.get("email"),
            "roles": _realm_roles(claims),
        }
        self.cache.set(token, user_data)
        return user_data


def _realm_roles(claims: Dict[str, Any]) -> List[str]:
    realm_access = claims.get("realm_access") or {}
    return list(realm_access.get("roles") or [])
