from pathlib import Path

from openpyxl import Workbook
from openpyxl.drawing.image import Image as XLImage
from PIL import Image

from app.database.base import Base
from app.database.engine import build_engine
from app.database.session import build_session_factory
from app.models import import_all_models
from app.services.media_service import MediaLayout

HEADER = [
    "Code",
    "Category",
    "Name",
    "Detail",
    "Specification",
    "Standard",
    "Unit",
    "Quantity",
    "Images",
    "Note",
    "Color",
]

INDEX = {
    "code": "A",
    "category_id": "B",
    "name": "C",
    "detail": "D",
    "specification": "E",
    "standard": "F",
    "unit": "G",
    "quantity": "H",
    "images": "I",
    "note": "J",
}


def make_session_factory(url="sqlite:///:memory:"):
    engine = build_engine(url)
    import_all_models()
    Base.metadata.create_all(bind=engine)
    return build_session_factory(engine)


def media_layout(root):
    return MediaLayout(root=Path(root), sub_dir="uploads", staging_dir_name="staging")


def write_png(path, size=(1600, 1200), color=(200, 30, 30)):
    Image.new("RGB", size, color).save(path, format="PNG")
    return Path(path)


def product_row(number, category="Bolts", name=None, **overrides):
    row = {
        "code": f"P-{number:03d}",
        "category": category,
        "name": name or f"Widget {number}",
        "detail": "Zinc plated",
        "specification": "M8x40",
        "standard": "DIN 933",
        "unit": "pcs",
        "quantity": 10 * number,
        "images": None,
        "note": None,
        "color": "grey",
    }
    row.update(overrides)
    return list(row.values())


def build_workbook(path, rows, images=None, header=None):
    """Save a one-sheet workbook; ``images`` maps an A1 address to a picture file."""
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "products"
    worksheet.append(header or HEADER)
    for row in rows:
        worksheet.append(row)
    for address, image_path in (images or {}).items():
        worksheet.add_image(XLImage(str(image_path)), address)
    workbook.save(path)
    return Path(path)


def files_in(directory):
    directory = Path(directory)
    if not directory.exists():
        return []
    return sorted(path for path in directory.rglob("*") if path.is_file())
