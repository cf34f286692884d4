from sqlalchemy import Boolean, Column, DateTime, String, func

from app.models.base import Base


class User(Base):
    """An account. Invitations provision these; ownership of notifications hangs off them."""

    id = Column(String, primary_key=True)
    name = Column(String(50), nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)

    role = Column(String, nullable=False, default="member")  # admin / manager / member
    department = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
