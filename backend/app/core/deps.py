from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.core.config import settings
from app.core.context import RequestContext
from app.core.security import decode_token
from app.db.models.user import User, Role
from app.crud.users import get_user_by_login
from app.services.storage import BlobStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_blob_store() -> BlobStore:
    return BlobStore(settings.UPLOAD_DIR)

def get_current_user(db: Session = Depends(get_db), token: str = Depends(oauth2_scheme)) -> User:
    try:
        payload = decode_token(token)
        login = payload.get("sub")
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user = get_user_by_login(db, login)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found/disabled")
    return user

def require_roles(*roles: Role):
    allowed = {r.value for r in roles}

    def _dep(user: User = Depends(get_current_user)) -> User:
        role = user.role.value if hasattr(user.role, "value") else str(user.role)
        if role not in allowed:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user
    return _dep

def context_for(user: User) -> RequestContext:
    return RequestContext(organization_id=user.organization_id, user_id=user.id)
