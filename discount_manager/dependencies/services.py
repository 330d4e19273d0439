from fastapi import Depends
from sqlalchemy.orm import Session

from discount_manager.database.connection import get_db
from discount_manager.services.container import Services, build_services


def get_services(db: Session = Depends(get_db)) -> Services:
    """Services over the request's session, backed by the catalog mirror."""
    return build_services(db)
