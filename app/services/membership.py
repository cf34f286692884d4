"""Project team roster."""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.project import Project, ProjectMember

logger = logging.getLogger(__name__)


class MembershipService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_project(self, project_id: str) -> Optional[Project]:
        return await self.db.get(Project, project_id)

    async def get_member(self, project_id: str, user_id: str) -> Optional[ProjectMember]:
        result = await self.db.execute(
            select(ProjectMember).where(
                ProjectMember.project_id == project_id,
                ProjectMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def add_member(
        self,
        project_id: str,
        user_id: str,
        role: str = "member",
        now: Optional[datetime] = None,
    ) -> ProjectMember:
        """Add a user to a project's team. Adding an existing member is a no-op."""
        existing = await self.get_member(project_id, user_id)
        if existing:
            return existing

        member = ProjectMember(
            id=str(uuid.uuid4()),
            project_id=project_id,
            user_id=user_id,
            role=role,
        )
        if now is not None:
            member.joined_at = now
        self.db.add(member)
        await self.db.flush()
        logger.info(f"Added user {user_id} to project {project_id} as {role}")
        return member

    async def list_members(self, project_id: str) -> List[ProjectMember]:
        result = await self.db.execute(
            select(ProjectMember)
            .where(ProjectMember.project_id == project_id)
            .order_by(ProjectMember.joined_at)
        )
        return list(result.scalars().all())
