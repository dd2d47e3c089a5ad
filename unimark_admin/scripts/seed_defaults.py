"""
Seed Default Roles and Profiles Script
This script creates the default roles and profiles from the config.
Safe to run repeatedly: existing rows are updated, never duplicated.
"""

import logging
import sys
from typing import Dict, List, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from unimark_admin.config.defaults import DEFAULT_PROFILES, DEFAULT_ROLES
from unimark_admin.config.settings import settings
from unimark_admin.database.base import utcnow
from unimark_admin.database.session import Database
from unimark_admin.modules.profiles.models import Profile
from unimark_admin.modules.roles.models import Role

logger = logging.getLogger(__name__)


def seed_roles(session: Session, roles: List[Dict] = DEFAULT_ROLES) -> Tuple[int, int]:
    """Seed roles from config; returns (created, updated)"""
    created_count = 0
    updated_count = 0
    for role_data in roles:
        role = session.scalar(select(Role).where(Role.name == role_data["name"]))
        if role is None:
            session.add(Role(**role_data))
            created_count += 1
            logger.debug("Created role: %s", role_data["name"])
        else:
            role.description = role_data["description"]
            role.level = role_data["level"]
            role.updated_at = utcnow()
            updated_count += 1
            logger.debug("Updated role: %s", role_data["name"])
    session.flush()
    logger.info("Roles seeded: %d created, %d updated", created_count, updated_count)
    return created_count, updated_count


def seed_profiles(session: Session, profiles: List[Dict] = DEFAULT_PROFILES) -> Tuple[int, int]:
    """Seed profiles from config; returns (created, updated)"""
    created_count = 0
    updated_count = 0
    for profile_data in profiles:
        profile = session.scalar(select(Profile).where(Profile.name == profile_data["name"]))
        if profile is None:
            session.add(Profile(**profile_data))
            created_count += 1
            logger.debug("Created profile: %s", profile_data["name"])
        else:
            profile.description = profile_data["description"]
            profile.type = profile_data["type"]
            profile.updated_at = utcnow()
            updated_count += 1
            logger.debug("Updated profile: %s", profile_data["name"])
    session.flush()
    logger.info("Profiles seeded: %d created, %d updated", created_count, updated_count)
    return created_count, updated_count


def seed(database: Database) -> None:
    database.create_schema()
    with database.transaction() as session:
        seed_roles(session)
        seed_profiles(session)


def main():
    """Main function to seed default roles and profiles"""
    logging.basicConfig(level=logging.INFO)
    database = Database.from_settings(settings)
    try:
        logger.info("Starting default roles and profiles seeding...")
        seed(database)
        logger.info("Seeding completed successfully!")
    except Exception as e:
        logger.error("Error during seeding: %s", e)
        sys.exit(1)
    finally:
        database.close()


if __name__ == "__main__":
    main()
