import logging
import re
from typing import Optional

from sqlalchemy import delete, select

from unimark_admin.core.errors import NotFoundError
from unimark_admin.database.session import Database
from unimark_admin.database.upsert import upsert
from unimark_admin.identity.keycloak_client import KeycloakClient
from unimark_admin.modules.profiles.models import Profile
from unimark_admin.modules.roles.models import Role
from unimark_admin.modules.users.models import UserProfile, UserRole
from unimark_admin.modules.users.schemas import (
    UserCreate, UserProfileResponse, AvailabilityResponse, UserProfileSummary, UserProfilesResponse,
    UserRoleSummary, UserRolesResponse
)

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{3,20}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

USERNAME_FORMAT_REASON = "Username must be 3-20 characters and contain only letters, numbers, and underscores"
EMAIL_FORMAT_REASON = "Invalid email format"

FORGOT_PASSWORD_ACTIONS = ["UPDATE_PASSWORD"]


class UserService:
    """User administration: identity provider calls plus local profile assignment"""

    def __init__(self, database: Database, identity_client: KeycloakClient):
        self.database = database
        self.identity_client = identity_client

    def create_user(self, data: UserCreate) -> str:
        """Create the user in Keycloak, then optionally assign a profile"""
        if data.profile_id is not None:
            # Fail before creating anything remotely
            with self.database.session() as session:
                if session.get(Profile, data.profile_id) is None:
                    raise NotFoundError("Profile not found")

        user_id = self.identity_client.create_user({
            "username": data.username,
            "email": data.email,
            "firstName": data.first_name,
            "lastName": data.last_name,
            "enabled": data.enabled,
            "emailVerified": False,
            "credentials": [{
                "type": "password",
                "value": data.password,
                "temporary": data.temporary_password,
            }],
        })

        if data.profile_id is not None:
            self.assign_profile(user_id, data.profile_id)
        return user_id

    def assign_profile(self, user_id: str, profile_id: str) -> UserProfileResponse:
        """Give the user this profile, replacing any profile they had"""
        with self.database.transaction() as session:
            if session.get(Profile, profile_id) is None:
                raise NotFoundError("Profile not found")
            row_id = upsert(
                session,
                UserProfile,
                {"user_id": user_id, "profile_id": profile_id},
                ["user_id"],
                ["profile_id"],
            )
            assignment = session.scalar(select(UserProfile).where(UserProfile.id == row_id))
            logger.info("Assigned profile %s to user %s", profile_id, user_id)
            return UserProfileResponse.model_validate(assignment)

    def get_user_profiles(self, user_id: str) -> UserProfilesResponse:
        """Profiles held by the user (zero or one)"""
        statement = (
            select(Profile)
            .join(UserProfile, UserProfile.profile_id == Profile.id)
            .where(UserProfile.user_id == user_id)
            .order_by(Profile.name)
        )
        with self.database.session() as session:
            profiles = [UserProfileSummary.model_validate(profile) for profile in session.scalars(statement)]
        return UserProfilesResponse(user_id=user_id, profiles=profiles, count=len(profiles))

    def remove_profile(self, user_id: str, profile_id: str) -> int:
        with self.database.transaction() as session:
            result = session.execute(
                delete(UserProfile).where(UserProfile.user_id == user_id, UserProfile.profile_id == profile_id)
            )
            if result.rowcount == 0:
                raise NotFoundError("Profile assignment not found")
            logger.info("Removed profile %s from user %s", profile_id, user_id)
            return result.rowcount

    def get_user_roles(self, user_id: str) -> UserRolesResponse:
        statement = (
            select(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id)
            .order_by(Role.name)
        )
        with self.database.session() as session:
            roles = [UserRoleSummary.model_validate(role) for role in session.scalars(statement)]
        return UserRolesResponse(user_id=user_id, roles=roles, count=len(roles))

    def remove_role(self, user_id: str, role_id: str) -> int:
        with self.database.transaction() as session:
            result = session.execute(
                delete(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
            )
            if result.rowcount == 0:
                raise NotFoundError("Role assignment not found")
            logger.info("Removed role %s from user %s", role_id, user_id)
            return result.rowcount

    def check_username(self, username: str, exclude_user_id: Optional[str] = None) -> AvailabilityResponse:
        if not USERNAME_PATTERN.fullmatch(username):
            return AvailabilityResponse(available=False, username=username, reason=USERNAME_FORMAT_REASON)

        users = self.identity_client.find_users(username=username)
        if exclude_user_id:
            users = [user for user in users if user.get("id") != exclude_user_id]
        available = len(users) == 0
        return AvailabilityResponse(
            available=available,
            username=username,
            reason=None if available else "Username already exists",
        )

    def check_email(self, email: str, exclude_user_id: Optional[str] = None) -> AvailabilityResponse:
        if not EMAIL_PATTERN.fullmatch(email):
            return AvailabilityResponse(available=False, email=email, reason=EMAIL_FORMAT_REASON)

        users = self.identity_client.find_users(email=email)
        if exclude_user_id:
            users = [user for user in users if user.get("id") != exclude_user_id]
        available = len(users) == 0
        return AvailabilityResponse(
            available=available,
            email=email,
            reason=None if available else "Email already exists",
        )

    def reset_password(self, user_id: str, password: str, temporary: bool = False) -> None:
        self.identity_client.reset_password(user_id, password, temporary)
        logger.info("Reset password for user %s (temporary=%s)", user_id, temporary)

    def send_forgot_password(self, user_id: str) -> None:
        self.identity_client.execute_actions_email(user_id, FORGOT_PASSWORD_ACTIONS)
        logger.info("Sent forgot password link to user %s", user_id)
