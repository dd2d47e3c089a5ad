"""
Core dependencies for route protection and shared resources
"""

from fastapi import Depends, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Dict, Optional

from unimark_admin.config.settings import Settings
from unimark_admin.core.errors import ForbiddenError, UnauthorizedError
from unimark_admin.database.session import Database
from unimark_admin.identity.keycloak_client import KeycloakClient
from unimark_admin.modules.auth.service import AuthService

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_identity_client(request: Request) -> KeycloakClient:
    return request.app.state.identity_client


def get_auth_service(request: Request) -> AuthService:
    return AuthService(request.app.state.identity_client, request.app.state.token_cache)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> Dict:
    """Extract current user info from the bearer token"""
    if credentials is None:
        raise UnauthorizedError("Not authenticated")
    return auth_service.get_current_user(credentials.credentials)


def require_admin(
    user_data: Dict = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> Dict:
    """Only callers holding the admin realm role may use the admin API"""
    if settings.admin_role not in user_data.get("roles", []):
        raise ForbiddenError("Forbidden", details=f"Required role: {settings.admin_role}")
    return user_data
