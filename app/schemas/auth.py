from typing import Literal, Optional

from pydantic import BaseModel, EmailStr

Role = Literal["admin", "manager", "member"]


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserSummary(BaseModel):
    """Short identity block embedded in other responses (inviter, acceptor)."""
    id: str
    name: str
    email: EmailStr

    model_config = {"from_attributes": True}


class AccountSummary(BaseModel):
    id: str
    name: str
    email: EmailStr
    role: Role
    department: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = {"from_attributes": True}


class AuthSessionResponse(BaseModel):
    success: bool = True
    data: AccountSummary
    access_token: str
    token_type: str = "bearer"
