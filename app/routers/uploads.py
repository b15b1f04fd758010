from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.constants import JOB_STATUS_QUEUED
from app.core.errors import ImportAbortedError, SchemaMismatchError, UnsupportedFileError
from app.dependencies import get_db, get_job_runner
from app.models.import_job import ImportJob
from app.schemas.uploads import (
    ImportFileRequest,
    ImportJobRead,
    ImportSummaryRead,
    JobSubmitted,
    ReconcileRead,
)
from app.services.asset_service import reconcile_pending_media
from app.services.job_runner import ImportJobRunner
from app.services.uploads_service import ImportConfig, ImportJobInput, import_file

router = APIRouter(prefix="/uploads", tags=["Uploads"])


def _job_input(payload: ImportFileRequest) -> ImportJobInput:
    try:
        config = ImportConfig.from_settings(
            batch_size=payload.batch_size,
            image_width=payload.image_width,
            image_height=payload.image_height,
            required_fields=payload.required_fields,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ImportJobInput(
        file_path=payload.path,
        column_mapping=payload.index,
        config=config,
        image_source_dir=payload.image_source_dir or get_settings().IMPORT_IMAGE_SOURCE_DIR,
    )


@router.post("/import", response_model=ImportSummaryRead)
def import_spreadsheet(payload: ImportFileRequest):
    try:
        summary = import_file(_job_input(payload))
    except (SchemaMismatchError, UnsupportedFileError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ImportAbortedError as exc:
        detail = {"error": str(exc), "batch": exc.batch_index, "row": exc.row_index}
        if exc.summary is not None:
            detail["summary"] = exc.summary.to_dict()
        raise HTTPException(status_code=500, detail=detail) from exc
    return summary.to_dict()


@router.post("/jobs", response_model=JobSubmitted, status_code=202)
def submit_import_job(
    payload: ImportFileRequest,
    runner: ImportJobRunner = Depends(get_job_runner),
):
    job_id = runner.submit(_job_input(payload))
    return {"job_id": job_id, "status": JOB_STATUS_QUEUED}


@router.get("/jobs/{job_id}", response_model=ImportJobRead)
def get_import_job(
    job_id: str,
    db: Session = Depends(get_db),
    runner: ImportJobRunner = Depends(get_job_runner),
):
    job = db.get(ImportJob, job_id)
    if job is not None:
        return job
    if runner.is_running(job_id):
        return {"id": job_id, "status": JOB_STATUS_QUEUED}
    raise HTTPException(status_code=404, detail="Import job not found.")


@router.post("/jobs/{job_id}/cancel", response_model=JobSubmitted)
def cancel_import_job(job_id: str, runner: ImportJobRunner = Depends(get_job_runner)):
    if not runner.cancel(job_id):
        raise HTTPException(status_code=404, detail="Import job is not running.")
    return {"job_id": job_id, "status": "cancelling"}


@router.post("/reconcile", response_model=ReconcileRead)
def reconcile_media():
    return reconcile_pending_media().to_dict()
