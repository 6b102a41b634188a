from sqlalchemy.orm import Session
from app.db.session import SessionLocal
from app.core.config import settings
from app.core.logging import logger
from app.crud.users import get_user_by_login, create_user
from app.crud.organizations import get_organization_by_name, create_organization
from app.schemas.admin import UserCreateIn
from app.db.models.user import Role

def seed_demo():
    db: Session = SessionLocal()
    try:
        org = get_organization_by_name(db, settings.DEMO_ORG_NAME)
        if not org:
            org = create_organization(db, settings.DEMO_ORG_NAME)
        if settings.DEMO_ADMIN_LOGIN and settings.DEMO_ADMIN_PASSWORD:
            if not get_user_by_login(db, settings.DEMO_ADMIN_LOGIN):
                create_user(db, UserCreateIn(
                    login=settings.DEMO_ADMIN_LOGIN,
                    password=settings.DEMO_ADMIN_PASSWORD,
                    role=Role.admin,
                    full_name="Demo Admin",
                ), org.id)
                logger.info("demo_admin_seeded", login=settings.DEMO_ADMIN_LOGIN, organization_id=org.id)
    finally:
        db.close()
