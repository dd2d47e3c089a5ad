from fastapi import APIRouter, Depends
from typing import Dict

from unimark_admin.config.settings import Settings
from unimark_admin.core.dependencies import get_current_user, get_settings
from unimark_admin.modules.auth.schemas import CurrentUserResponse

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=CurrentUserResponse)
def get_me(
    current_user: Dict = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    """Current authenticated caller and whether they may use the admin API (for frontend UI)."""
    return CurrentUserResponse(
        **current_user,
        is_admin=settings.admin_role in current_user.get("roles", []),
    )
