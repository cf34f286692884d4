from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint, func

from app.models.base import Base


class Project(Base):
    id = Column(String, primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="planning")  # planning, in-progress, completed, on-hold, cancelled
    manager_id = Column(String, ForeignKey("user.id"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class ProjectMember(Base):
    """Team roster entry. One row per (project, user)."""

    __tablename__ = "project_member"

    id = Column(String, primary_key=True)
    project_id = Column(String, ForeignKey("project.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False, default="member")
    joined_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_project_member_project_user"),
    )
