from pydantic import BaseModel
from typing import List, Optional


class CurrentUserResponse(BaseModel):
    id: str
    username: Optional[str] = None
    email: Optional[str] = None
    roles: List[str] = []
    is_admin: bool = False
