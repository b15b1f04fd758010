from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.dependencies import get_db
from app.models.category import Category
from app.schemas.product import CategoryRead, ProductRead
from app.services.product_service import ProductRepository

router = APIRouter(tags=["Products"])


@router.get("/products/{product_id}", response_model=ProductRead)
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = ProductRepository(db).get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found.")
    return product


@router.get("/categories/{category_id}", response_model=CategoryRead)
def get_category(category_id: int, db: Session = Depends(get_db)):
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found.")
    return category
