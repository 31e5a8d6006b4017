from fastapi import Depends
from sqlalchemy.orm import Session

from app.db.base import SessionLocal
from app.events import get_event_publisher
from app.services.cache_service import get_cache_service
from app.services.category_service import CategoryService


def get_db():
    """FastAPI dependency for database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_category_service(db: Session = Depends(get_db)) -> CategoryService:
    """Get category service bound to the request's DB session"""
    return CategoryService(
        db_session=db,
        cache=get_cache_service(),
        publisher=get_event_publisher(),
    )
