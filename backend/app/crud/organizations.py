from sqlalchemy import select
from sqlalchemy.orm import Session
from app.db.models.organization import Organization

def get_organization_by_name(db: Session, name: str) -> Organization | None:
    return db.scalars(select(Organization).where(Organization.name == name)).first()

def create_organization(db: Session, name: str) -> Organization:
    org = Organization(name=name)
    db.add(org)
    db.commit()
    db.refresh(org)
    return org
