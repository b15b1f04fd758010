import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.category import Category

logger = logging.getLogger(__name__)


class CategoryRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_name(self, name: str) -> int | None:
        return self.db.execute(
            select(Category.id).where(Category.name == name)
        ).scalar_one_or_none()

    def create(self, name: str, icon_name: str = "") -> int:
        category = Category(name=name, icon_name=icon_name)
        self.db.add(category)
        self.db.flush()
        return category.id

    def find_or_create(self, name: str) -> tuple[int, bool]:
        """Return ``(id, created)``; a concurrent insert of the same name is re-read."""
        existing = self.find_by_name(name)
        if existing is not None:
            return existing, False
        try:
            with self.db.begin_nested():
                return self.create(name), True
        except IntegrityError:
            logger.info("Category %r was created concurrently; reusing it.", name)
            winner = self.find_by_name(name)
            if winner is None:
                raise
            return winner, False


__all__ = ["CategoryRepository"]
