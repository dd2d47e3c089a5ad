"""
Default access-control records.
Used by the seed script to make sure a fresh database has an administrator
role and a protected System profile to hand to the first admins.
"""

from unimark_admin.modules.profiles.models import PROFILE_TYPE_SYSTEM

DEFAULT_ROLES = [
    {
        "name": "admin",
        "description": "Full administrative access to the admin API",
        "level": "realm",
    },
]

DEFAULT_PROFILES = [
    {
        "name": "System Administrator",
        "description": "Built-in profile for platform administrators",
        "type": PROFILE_TYPE_SYSTEM,
    },
]
