from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_roles
from app.db.models.user import Role
from app.schemas.admin import UserCreateIn, UserAdminOut
from app.crud.users import create_user, get_user_by_login, list_users

router = APIRouter()

@router.get("/users", response_model=list[UserAdminOut])
def users(db: Session = Depends(get_db), admin=Depends(require_roles(Role.admin))):
    return list_users(db, admin.organization_id)

@router.post("/users", response_model=UserAdminOut)
def create_user_endpoint(data: UserCreateIn, db: Session = Depends(get_db), admin=Depends(require_roles(Role.admin))):
    if get_user_by_login(db, data.login):
        raise HTTPException(status_code=409, detail="Login already taken")
    return create_user(db, data, admin.organization_id)
