from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from vamo.models.profile import ProfileRole


class Profile(BaseModel):
    id: str
    email: str = ""
    display_name: Optional[str] = None
    pineapple_balance: int = 0
    role: str = ProfileRole.USER.value
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def is_admin(self) -> bool:
        return ProfileRole.is_admin(self.role)
