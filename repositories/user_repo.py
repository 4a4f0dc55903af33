# repositories/user_repo.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from models import User
from typing import Optional
from repositories.base import utcnow


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_user(self, user_id: str, email: str, name: Optional[str] = None) -> User:
        now = utcnow()
        user = User(id=user_id, email=email, name=name, created_at=now, updated_at=now)
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError:
            # параллельный запрос успел создать того же пользователя
            await self.session.rollback()
            existing = await self.get_by_id(user_id)
            if existing is None:
                raise
            return existing
        await self.session.refresh(user)
        return user

    async def get_by_id(self, user_id: str) -> Optional[User]:
        q = await self.session.execute(select(User).where(User.id == user_id))
        return q.scalars().first()

    async def update_name(self, user: User, name: str) -> User:
        user.name = name
        user.updated_at = utcnow()
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def ensure_user(self, user_id: str, email: str, name: Optional[str] = None) -> User:
        existing = await self.get_by_id(user_id)
        if existing:
            # имя обновляем только если пришло новое непустое
            if name and name != existing.name:
                return await self.update_name(existing, name)
            return existing
        return await self.create_user(user_id, email, name)
