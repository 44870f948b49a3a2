import uuid
from typing import List, Optional

from sqlalchemy import select

from models.models import Property


class PropertyRepo:
    def __init__(self, db):
        self.db = db

    async def get_by_id(self, property_id: uuid.UUID) -> Optional[Property]:
        result = await self.db.execute(
            select(Property).where(Property.id == property_id)
        )
        return result.scalar_one_or_none()

    async def list_by_owner(self, owner_id: uuid.UUID) -> List[Property]:
        result = await self.db.execute(
            select(Property).where(Property.owner_id == owner_id)
        )
        return result.scalars().all()
