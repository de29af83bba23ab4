"""Base repository over one mapped table."""

from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from darkroom.db.base import Base


class BaseRepository:
    """Async CRUD keyed on ``pk_field``. Subclasses set ``model_class``."""

    model_class: type[Base]
    pk_field: str = "id"

    def __init__(self, session: AsyncSession, model_class: type[Base] | None = None):
        self.session = session
        if model_class is not None:
            self.model_class = model_class

    @property
    def _pk(self):
        return getattr(self.model_class, self.pk_field)

    async def get(self, pk_value: Any):
        result = await self.session.execute(
            select(self.model_class).where(self._pk == pk_value)
        )
        return result.scalar_one_or_none()

    async def create(self, **values: Any):
        row = self.model_class(**values)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row, **values: Any):
        for key, value in values.items():
            setattr(row, key, value)
        await self.session.flush()
        return row

    async def delete(self, pk_value: Any) -> bool:
        """Delete by key. Returns False when nothing matched."""
        result = await self.session.execute(
            delete(self.model_class).where(self._pk == pk_value)
        )
        await self.session.flush()
        return bool(result.rowcount)
