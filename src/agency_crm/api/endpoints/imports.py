import io
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session

from src.agency_crm import models, schemas
from src.agency_crm.api.deps import get_current_agency, get_current_user
from src.agency_crm.core.database import get_db
from src.agency_crm.services import lead_import
from src.agency_crm.utils.import_helpers import is_terminal, job_progress_percent

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/imports", tags=["Lead Import"])


def _get_job(db: Session, job_id: str, agency: models.Agency) -> models.ImportJob:
    job = (
        db.query(models.ImportJob)
        .filter(
            models.ImportJob.id == job_id,
            models.ImportJob.agency_id == agency.id,
        )
        .first()
    )
    if not job:
        raise HTTPException(status_code=404, detail="Import job not found")
    return job


def _job_response(job: models.ImportJob) -> schemas.ImportJobResponse:
    response = schemas.ImportJobResponse.model_validate(job)
    response.percent = job_progress_percent(
        job.success_count, job.error_count, job.total_rows
    )
    return response


@router.post(
    "",
    response_model=schemas.ImportJobResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_import_job(
    data: schemas.ImportJobCreate,
    current_user: models.Profile = Depends(get_current_user),
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
):
    """Create the job record for a CSV import before its batches are sent."""
    if not data.filename.lower().endswith(".csv"):
        raise HTTPException(
            status_code=400, detail="Invalid file type. Please upload a CSV file."
        )
    job = lead_import.create_import_job(
        db, agency.id, current_user.id, data.filename, data.total_rows
    )
    return _job_response(job)


@router.post("/{job_id}/rows", response_model=schemas.ImportBatchResponse)
def process_import_batch(
    job_id: str,
    data: schemas.ImportBatchRequest,
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
):
    """
    Process one batch of mapped CSV rows for an import job.

    Rows are inserted as leads of the caller's agency. Re-sending a batch
    with the same offset is a no-op for rows already recorded.
    """
    if data.agency_id and data.agency_id != agency.id:
        raise HTTPException(
            status_code=403, detail="Import job belongs to another agency"
        )

    job = _get_job(db, job_id, agency)
    if is_terminal(job.status):
        raise HTTPException(
            status_code=409, detail=f"Import job is already {job.status}"
        )

    try:
        result = lead_import.process_import_batch(db, job, data.rows, data.offset)
    except Exception as e:
        logger.error(f"Import failed for job {job_id}: {e}")
        return JSONResponse(status_code=500, content={"detail": "Import failed"})

    return result


@router.get("/{job_id}", response_model=schemas.ImportJobResponse)
def get_import_job(
    job_id: str,
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
):
    """Current counters for an import job; polled by the client until terminal."""
    return _job_response(_get_job(db, job_id, agency))


@router.get("/{job_id}/errors.csv")
def download_error_report(
    job_id: str,
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
):
    """Download the rows that failed validation as CSV (Row, Error, Data)."""
    job = _get_job(db, job_id, agency)
    report = lead_import.build_error_report(job.error_details or [])
    return StreamingResponse(
        io.StringIO(report),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="import_errors_{job.id}.csv"'
        },
    )
