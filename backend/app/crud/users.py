from sqlalchemy import select
from sqlalchemy.orm import Session
from app.db.models.user import User
from app.core.security import hash_password
from app.schemas.admin import UserCreateIn

def get_user_by_login(db: Session, login: str) -> User | None:
    return db.scalars(select(User).where(User.login == login)).one_or_none()

def list_users(db: Session, organization_id: int) -> list[User]:
    return list(db.scalars(select(User).where(User.organization_id == organization_id).order_by(User.id)))

def create_user(db: Session, data: UserCreateIn, organization_id: int) -> User:
    u = User(
        login=data.login,
        password_hash=hash_password(data.password),
        role=data.role.value,
        full_name=data.full_name,
        organization_id=organization_id,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u
