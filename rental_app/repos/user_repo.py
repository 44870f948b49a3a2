import uuid
from typing import Optional

from sqlalchemy import select

from models.models import User


class UserRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()
