from app.services.asset_service import ReconcileReport, reconcile_pending_media
from app.services.job_runner import ImportJobRunner
from app.services.uploads_service import (
    ImportConfig,
    ImportJobInput,
    ImportSummary,
    import_file,
)

__all__ = [
    "ImportConfig",
    "ImportJobInput",
    "ImportJobRunner",
    "ImportSummary",
    "ReconcileReport",
    "import_file",
    "reconcile_pending_media",
]
