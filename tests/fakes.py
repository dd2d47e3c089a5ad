import json
from typing import Dict, List, Optional

import httpx

ISSUER = "https://keycloak.test/realms/unimark"
ADMIN_USERS_URL = "/admin/realms/unimark/users"


class FakeKeycloak:
    """In-memory stand-in for the Keycloak endpoints the admin API calls."""

    def __init__(self):
        self.users: List[Dict] = []
        self.requests: List[httpx.Request] = []
        self.token_requests = 0
        self.introspection: Dict = {"active": False}
        self.create_status = 201
        self.reset_status = 204
        self.actions_status = 204

    def add_user(self, user_id: str, username: str, email: Optional[str] = None) -> None:
        self.users.append({"id": user_id, "username": username, "email": email})

    def admin_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith("/admin/")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/protocol/openid-connect/token"):
            self.token_requests += 1
            return httpx.Response(200, json={"access_token": "service-token", "expires_in": 300})
        if path.endswith("/protocol/openid-connect/token/introspect"):
            return httpx.Response(200, json=self.introspection)

        if path == ADMIN_USERS_URL and request.method == "GET":
            username = request.url.params.get("username")
            email = request.url.params.get("email")
            matches = [
                user for user in self.users
                if (username is None or user["username"] == username)
                and (email is None or user["email"] == email)
            ]
            return httpx.Response(200, json=matches)

        if path == ADMIN_USERS_URL and request.method == "POST":
            if self.create_status != 201:
                return httpx.Response(self.create_status, json={"errorMessage": "User exists with same username"})
            body = json.loads(request.content)
            user_id = f"kc-{len(self.users) + 1}"
            self.add_user(user_id, body["username"], body.get("email"))
            return httpx.Response(201, headers={"Location": f"https://keycloak.test{ADMIN_USERS_URL}/{user_id}"})

        if path.endswith("/reset-password"):
            return httpx.Response(self.reset_status)
        if path.endswith("/execute-actions-email"):
            return httpx.Response(self.actions_status)
        return httpx.Response(404, json={"error": "not found"})
