import importlib

from app.models.category import Category
from app.models.import_job import ImportJob
from app.models.product import Product


def import_all_models() -> None:
    for module_name in (
        "app.models.category",
        "app.models.import_job",
        "app.models.product",
    ):
        importlib.import_module(module_name)


__all__ = [
    "Category",
    "ImportJob",
    "Product",
    "import_all_models",
]
