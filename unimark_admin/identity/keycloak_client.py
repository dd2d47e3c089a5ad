"""
Keycloak admin REST client.

Only the calls the admin API needs: a service token (client_credentials),
exact user lookup, user creation, password reset, "required actions" email
and token introspection for authenticating callers.
"""

import logging
import re
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from unimark_admin.config.settings import Settings
from unimark_admin.core.errors import ConflictError, NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_REALM = "unimark"
# Refresh the service token this many seconds before Keycloak expires it
TOKEN_EXPIRY_MARGIN_SEC = 30


def parse_issuer(issuer: str) -> Tuple[str, str]:
    """Split https://host/realms/<realm> into (realm, https://host)."""
    match = re.search(r"/realms/([^/]+)", issuer)
    realm = match.group(1) if match else DEFAULT_REALM
    base_url = re.sub(r"/realms/[^/]+/?$", "", issuer.rstrip("/"))
    return realm, base_url


class KeycloakClient:
    def __init__(
        self,
        issuer: str,
        client_id: str,
        client_secret: str,
        *,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.issuer = issuer.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.realm, self.base_url = parse_issuer(self.issuer)
        if http_client is not None:
            self._http = http_client
        elif timeout is not None:
            self._http = httpx.Client(timeout=timeout)
        else:
            self._http = httpx.Client()
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "KeycloakClient":
        return cls(
            settings.keycloak_issuer,
            settings.keycloak_admin_client_id,
            settings.keycloak_admin_client_secret,
            timeout=settings.keycloak_timeout_seconds,
        )

    @property
    def admin_url(self) -> str:
        return f"{self.base_url}/admin/realms/{self.realm}"

    def _ensure_configured(self) -> None:
        if not self.issuer:
            raise UpstreamError("Server configuration error: KEYCLOAK_ISSUER not set")

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Identity provider request %s %s failed: %s", method, url, e)
            raise UpstreamError("Identity provider unreachable", details=str(e))

    def get_admin_token(self) -> str:
        """Service-account token via client_credentials, cached until near expiry."""
        self._ensure_configured()
        with self._lock:
            now = time.monotonic()
            if self._token and now < self._token_expires_at:
                return self._token

            response = self._request(
                "POST",
                f"{self.issuer}/protocol/openid-connect/token",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
            )
            if response.status_code != 200:
                logger.error("Failed to get admin token from identity provider: %s", response.status_code)
                raise UpstreamError("Failed to authenticate with identity provider")

            payload = response.json()
            self._token = payload["access_token"]
            expires_in = int(payload.get("expires_in", 60))
            self._token_expires_at = now + max(expires_in - TOKEN_EXPIRY_MARGIN_SEC, 0)
            return self._token

    def _admin_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.get_admin_token()}"}

    def find_users(self, *, username: Optional[str] = None, email: Optional[str] = None) -> List[Dict[str, Any]]:
        """Exact-match search by username or email."""
        params: Dict[str, Any] = {"exact": "true"}
        if username is not None:
            params["username"] = username
        if email is not None:
            params["email"] = email
        response = self._request("GET", f"{self.admin_url}/users", params=params, headers=self._admin_headers())
        if response.status_code != 200:
            logger.error("Failed to search users in identity provider: %s", response.status_code)
            raise UpstreamError("Failed to search users in identity provider")
        return response.json()

    def create_user(self, representation: Dict[str, Any]) -> str:
        """Create a user and return its id (taken from the Location header)."""
        response = self._request(
            "POST", f"{self.admin_url}/users", json=representation, headers=self._admin_headers()
        )
        if response.status_code == 409:
            raise ConflictError("User already exists", details=_error_message(response))
        if response.status_code != 201:
            raise UpstreamError("Failed to create user", details=_error_message(response))

        location = response.headers.get("Location", "")
        user_id = location.rstrip("/").rsplit("/", 1)[-1] if location else ""
        if not user_id:
            matches = self.find_users(username=representation.get("username"))
            if not matches:
                raise UpstreamError("Created user could not be found")
            user_id = matches[0]["id"]
        logger.info("Created identity provider user %s", user_id)
        return user_id

    def reset_password(self, user_id: str, password: str, temporary: bool = False) -> None:
        response = self._request(
            "PUT",
            f"{self.admin_url}/users/{user_id}/reset-password",
            json={"type": "password", "value": password, "temporary": temporary},
            headers=self._admin_headers(),
        )
        if response.status_code == 404:
            raise NotFoundError("User not found")
        if response.status_code not in (200, 204):
            raise UpstreamError("Failed to reset password", details=_error_message(response))

    def execute_actions_email(self, user_id: str, actions: List[str]) -> None:
        response = self._request(
            "PUT",
            f"{self.admin_url}/users/{user_id}/execute-actions-email",
            json=actions,
            headers=self._admin_headers(),
        )
        if response.status_code == 404:
            raise NotFoundError("User not found")
        if response.status_code not in (200, 204):
            logger.error("Failed to send actions email: %s", response.status_code)
            raise UpstreamError("Failed to send forgot password link", details=_error_message(response))

    def introspect_token(self, token: str) -> Dict[str, Any]:
        self._ensure_configured()
        response = self._request(
            "POST",
            f"{self.issuer}/protocol/openid-connect/token/introspect",
            data={"token": token, "client_id": self.client_id, "client_secret": self.client_secret},
        )
        if response.status_code != 200:
            raise UpstreamError("Token introspection failed")
        return response.json()

    def close(self) -> None:
        self._http.close()


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        return payload.get("errorMessage") or payload.get("error") or str(payload)
    return str(payload)
