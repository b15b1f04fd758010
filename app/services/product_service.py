from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, cast

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.constants import (
    MEDIA_STATUS_COMPLETE,
    MEDIA_STATUS_FAILED,
    MEDIA_STATUS_PENDING,
)
from app.models.product import Product
from app.services.workbook_reader import is_blank

_TEXT_FIELDS = ("code", "name", "detail", "specification", "standard", "unit", "note")


def to_text(value):
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def to_int(value, field, required=True):
    if is_blank(value):
        if required:
            raise ValueError(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise ValueError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValueError(f"{field} must be an integer")
    if isinstance(value, str):
        value_text = value.strip().replace(",", "")
        try:
            return int(value_text)
        except ValueError:
            try:
                numeric = float(value_text)
            except ValueError:
                raise ValueError(f"{field} must be an integer") from None
            if not numeric.is_integer():
                raise ValueError(f"{field} must be an integer")
            return int(numeric)
    raise ValueError(f"{field} must be an integer")


def json_safe(value):
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def build_product_values(fields: dict[str, Any], category_id: int) -> dict[str, Any]:
    values: dict[str, Any] = {field: to_text(fields.get(field)) for field in _TEXT_FIELDS}
    values["category_id"] = category_id
    quantity = to_int(fields.get("quantity"), "quantity", required=False)
    values["quantity"] = 0 if quantity is None else quantity
    return values


class ProductRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_name(self, name: str) -> Product | None:
        return (
            self.db.execute(select(Product).where(Product.name == name).limit(1))
            .scalars()
            .first()
        )

    def create(self, values: dict[str, Any]) -> Product:
        product = Product(**values)
        self.db.add(product)
        # Flush so the id exists and later rows of the same batch see this name.
        self.db.flush()
        return product

    def get(self, product_id: int) -> Product | None:
        return self.db.get(Product, product_id)

    def update_images(
        self,
        product_id: int,
        paths: Iterable[str],
        *,
        media_status: str = MEDIA_STATUS_COMPLETE,
    ) -> Product:
        product = self.db.get(Product, product_id)
        if product is None:
            raise LookupError(f"product {product_id} not found")
        product.images = list(paths)
        product.staged_images = []
        product.media_status = media_status
        self.db.flush()
        return product

    def mark_media_status(self, product_id: int, media_status: str) -> None:
        product = self.db.get(Product, product_id)
        if product is not None:
            product.media_status = media_status
            self.db.flush()

    def list_pending_media(self) -> list[Product]:
        products = (
            self.db.execute(
                select(Product)
                .where(Product.media_status.in_((MEDIA_STATUS_PENDING, MEDIA_STATUS_FAILED)))
                .order_by(Product.id)
            )
            .scalars()
            .all()
        )
        return cast(list[Product], list(products))


__all__ = [
    "ProductRepository",
    "build_product_values",
    "json_safe",
    "to_int",
    "to_text",
]
