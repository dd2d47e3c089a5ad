import logging
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from unimark_admin.core.errors import ConflictError, NotFoundError, UpstreamError
from unimark_admin.core.guards import DeleteGuard, count_rows, lock_one
from unimark_admin.database.base import utcnow
from unimark_admin.database.session import Database
from unimark_admin.database.upsert import insert_or_ignore
from unimark_admin.modules.permission_sets.models import PermissionSet
from unimark_admin.modules.permission_sets.schemas import PermissionSetResponse
from unimark_admin.modules.profiles.models import PROFILE_TYPE_SYSTEM, Profile, ProfilePermissionSet
from unimark_admin.modules.profiles.schemas import (
    ProfileCreate, ProfileUpdate, ProfileResponse, ProfileWithCountResponse
)
from unimark_admin.modules.users.models import UserProfile

logger = logging.getLogger(__name__)


def _remove_permission_set_links(session, profile: Profile) -> None:
    session.execute(delete(ProfilePermissionSet).where(ProfilePermissionSet.profile_id == profile.id))


PROFILE_DELETE_GUARD = DeleteGuard(
    entity_label="profile",
    dependent_label="user",
    count_dependents=lambda session, profile: count_rows(
        session, UserProfile.id, UserProfile.profile_id == profile.id
    ),
    is_protected=lambda profile: profile.type == PROFILE_TYPE_SYSTEM,
    protected_error="Cannot delete system profiles",
    protected_details="System profiles are protected and cannot be deleted",
    cleanup=_remove_permission_set_links,
)


class ProfileService:
    def __init__(self, database: Database):
        self.database = database

    def create_profile(self, profile_data: ProfileCreate) -> ProfileResponse:
        """Create a new profile"""
        try:
            with self.database.transaction() as session:
                if session.scalar(select(Profile.id).where(Profile.name == profile_data.name)):
                    raise ConflictError("Profile name already exists")
                profile = Profile(
                    name=profile_data.name,
                    description=profile_data.description,
                    type=profile_data.type,
                )
                session.add(profile)
                session.flush()
                logger.info("Created profile %s (%s)", profile.name, profile.id)
                return ProfileResponse.model_validate(profile)
        except IntegrityError:
            raise ConflictError("Profile name already exists")

    def get_profile_by_id(self, profile_id: str) -> ProfileResponse:
        with self.database.session() as session:
            profile = session.get(Profile, profile_id)
            if profile is None:
                raise NotFoundError("Profile not found")
            return ProfileResponse.model_validate(profile)

    def list_profiles(self, limit: int = 100, offset: int = 0) -> List[ProfileWithCountResponse]:
        """List profiles with their assigned permission set counts"""
        set_counts = (
            select(ProfilePermissionSet.profile_id, func.count(ProfilePermissionSet.id).label("cnt"))
            .group_by(ProfilePermissionSet.profile_id)
            .subquery()
        )
        statement = (
            select(Profile, func.coalesce(set_counts.c.cnt, 0))
            .outerjoin(set_counts, set_counts.c.profile_id == Profile.id)
            .order_by(Profile.created_at.desc(), Profile.name)
            .limit(limit)
            .offset(offset)
        )
        with self.database.session() as session:
            return [
                ProfileWithCountResponse(
                    **ProfileResponse.model_validate(profile).model_dump(),
                    permission_set_count=count,
                )
                for profile, count in session.execute(statement).all()
            ]

    def update_profile(self, profile_data: ProfileUpdate) -> ProfileResponse:
        """Replace description and type of the profile with this name"""
        with self.database.transaction() as session:
            profile = lock_one(session, select(Profile).where(Profile.name == profile_data.name), "Profile not found")
            profile.description = profile_data.description
            profile.type = profile_data.type
            profile.updated_at = utcnow()
            session.flush()
            return ProfileResponse.model_validate(profile)

    def delete_profile_by_name(self, name: str) -> str:
        with self.database.transaction() as session:
            return PROFILE_DELETE_GUARD.run(session, select(Profile).where(Profile.name == name))

    def delete_profile(self, profile_id: str) -> str:
        with self.database.transaction() as session:
            return PROFILE_DELETE_GUARD.run(session, select(Profile).where(Profile.id == profile_id))

    def get_profile_permission_sets(self, profile_id: str) -> List[PermissionSetResponse]:
        """Permission sets assigned to a profile"""
        with self.database.session() as session:
            if session.get(Profile, profile_id) is None:
                raise NotFoundError("Profile not found")
            rows = session.scalars(
                select(PermissionSet)
                .join(ProfilePermissionSet, ProfilePermissionSet.permission_set_id == PermissionSet.id)
                .where(ProfilePermissionSet.profile_id == profile_id)
                .order_by(PermissionSet.name)
            ).all()
            return [PermissionSetResponse.model_validate(row) for row in rows]

    def assign_permission_set(self, profile_id: str, permission_set_id: str) -> Tuple[bool, Optional[str]]:
        """Link a permission set to a profile; an existing link is left alone.

        Returns (inserted, record_id).
        """
        with self.database.transaction() as session:
            lock_one(session, select(Profile).where(Profile.id == profile_id), "Profile not found")
            if session.get(PermissionSet, permission_set_id) is None:
                raise NotFoundError("Permission set not found")

            record_id = insert_or_ignore(
                session,
                ProfilePermissionSet,
                {"profile_id": profile_id, "permission_set_id": permission_set_id},
                ["profile_id", "permission_set_id"],
            )
            if record_id is None:
                record_id = session.scalar(
                    select(ProfilePermissionSet.id).where(
                        ProfilePermissionSet.profile_id == profile_id,
                        ProfilePermissionSet.permission_set_id == permission_set_id,
                    )
                )
                return False, record_id
            logger.info("Assigned permission set %s to profile %s", permission_set_id, profile_id)
            return True, record_id

    def unassign_permission_set(self, profile_id: str, permission_set_id: str) -> int:
        with self.database.transaction() as session:
            if session.get(Profile, profile_id) is None:
                raise NotFoundError("Profile not found")
            result = session.execute(
                delete(ProfilePermissionSet).where(
                    ProfilePermissionSet.profile_id == profile_id,
                    ProfilePermissionSet.permission_set_id == permission_set_id,
                )
            )
            return result.rowcount

    def remove_all_users(self, profile_id: str) -> int:
        """Remove every user assignment of a profile and verify none remain"""
        with self.database.transaction() as session:
            profile = lock_one(session, select(Profile).where(Profile.id == profile_id), "Profile not found")
            current = count_rows(session, UserProfile.id, UserProfile.profile_id == profile.id)
            if current == 0:
                return 0

            result = session.execute(delete(UserProfile).where(UserProfile.profile_id == profile.id))
            remaining = count_rows(session, UserProfile.id, UserProfile.profile_id == profile.id)
            if remaining > 0:
                logger.error("Failed to remove all user assignments of profile %s, %d remain", profile.id, remaining)
                raise UpstreamError("Failed to remove all user assignments")

            logger.info("Removed %d user assignment(s) from profile %s", result.rowcount, profile.name)
            return result.rowcount
