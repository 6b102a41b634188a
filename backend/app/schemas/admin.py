from pydantic import BaseModel, ConfigDict, Field

from app.db.models.user import Role

class UserCreateIn(BaseModel):
    login: str = Field(..., min_length=3, max_length=64)
    password: str = Field(..., min_length=6, max_length=128)
    role: Role = Role.viewer
    full_name: str | None = None

class UserAdminOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    login: str
    full_name: str | None
    role: str
    is_active: bool
    organization_id: int
