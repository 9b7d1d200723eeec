from datetime import datetime
from typing import List, Optional
from sqlmodel import SQLModel, Field, Relationship
from framework.models import AuditBase, UTCDateTime


class UserRole(SQLModel, table=True):
    __tablename__ = "user_roles"
    user_id: int = Field(foreign_key="users.id", primary_key=True, ondelete="CASCADE")
    role_id: int = Field(foreign_key="roles.id", primary_key=True, ondelete="CASCADE")


class Role(AuditBase, table=True):
    __tablename__ = "roles"
    name: str = Field(max_length=256, unique=True, index=True)

    users: List["User"] = Relationship(back_populates="roles", link_model=UserRole)


class User(AuditBase, table=True):
    __tablename__ = "users"
    email: str = Field(max_length=256, unique=True, index=True)
    username: str = Field(max_length=256, index=True)
    hashed_password: str
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    date_of_birth: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    profile_picture_url: Optional[str] = Field(default=None, max_length=200)

    roles: List[Role] = Relationship(back_populates="users", link_model=UserRole)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def role_names(self) -> List[str]:
        return [role.name for role in self.roles]
