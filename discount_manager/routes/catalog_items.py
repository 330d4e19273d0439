from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from discount_manager.database.connection import get_db
from discount_manager.schemas.catalog_item import CatalogItemCreate, CatalogItemResponse
from discount_manager.services.catalog_service import (
    create_catalog_item,
    get_catalog_item,
    list_catalog_items,
)

router = APIRouter(prefix="/catalog-items", tags=["Catalog Mirror"])


# CREATE
@router.post("/", response_model=CatalogItemResponse, status_code=201)
def create(data: CatalogItemCreate, db: Session = Depends(get_db)):
    item = create_catalog_item(db, data)
    if not item:
        raise HTTPException(409, "Catalog item already exists")
    return item


# LIST
@router.get("/", response_model=List[CatalogItemResponse])
def list_all(
    vendor: Optional[str] = None,
    product_type: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return list_catalog_items(db, vendor=vendor, product_type=product_type, skip=skip, limit=limit)


# GET BY ID
@router.get("/{item_id}", response_model=CatalogItemResponse)
def get(item_id: str, db: Session = Depends(get_db)):
    item = get_catalog_item(db, item_id)
    if not item:
        raise HTTPException(404, "Catalog item not found")
    return item
