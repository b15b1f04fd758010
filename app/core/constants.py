# Header row is the first populated row; data starts right after it.
DATA_ROW_OFFSET = 1

PRODUCT_FIELDS = (
    "code",
    "category_id",
    "name",
    "detail",
    "specification",
    "standard",
    "unit",
    "quantity",
    "images",
    "note",
)
DEFAULT_REQUIRED_FIELDS = (
    "code",
    "category_id",
    "name",
    "specification",
    "standard",
    "unit",
    "quantity",
)
REFERENCE_FIELD = "category_id"
# Required on every import whatever the caller declares; name is the de-duplication key.
ALWAYS_REQUIRED_FIELDS = ("name",)
IMAGES_FIELD = "images"

RESIZABLE_IMAGE_FORMATS = ("png", "jpg", "jpeg", "gif", "bmp")
SUPPORTED_WORKBOOK_SUFFIXES = (".xlsx", ".xlsm", ".csv")

MEDIA_DIR_PRODUCT = "product"

MEDIA_STATUS_NONE = "none"
MEDIA_STATUS_PENDING = "pending"
MEDIA_STATUS_COMPLETE = "complete"
MEDIA_STATUS_FAILED = "failed"
MEDIA_STATUS_LOST = "lost"

JOB_STATUS_QUEUED = "queued"
JOB_STATUS_RUNNING = "running"
JOB_STATUS_SUCCESS = "success"
JOB_STATUS_FAILED = "failed"
JOB_STATUS_CANCELLED = "cancelled"
