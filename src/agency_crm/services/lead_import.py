"""
Server side of the chunked CSV lead import.

The client creates an import job, then posts the mapped rows in batches.
Each batch is deduplicated by row hash (so a retried batch is a no-op),
validated, inserted as leads up to the plan's monthly lead allowance and
folded into the job counters. The job turns terminal once every row of
the file has been accounted for.
"""

import csv
import hashlib
import io
import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from src.agency_crm import models
from src.agency_crm.services.lead_limit import remaining_lead_allowance
from src.agency_crm.utils.import_helpers import (
    IMPORT_COMPLETED_WITH_ERRORS,
    IMPORT_FAILED,
    IMPORT_PENDING,
    IMPORT_RUNNING,
    IMPORT_SUCCEEDED,
)
from src.agency_crm.utils.plan_helpers import lead_limit_message

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Leads are inserted in chunks of this size within one batch
INSERT_CHUNK = 500

# Keep the stored error list bounded for very dirty files
MAX_ERROR_DETAILS = 1000

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def row_hash(index: int, row: Dict[str, Any]) -> str:
    """SHA-256 of the row and its position in the file."""
    payload = json.dumps(
        {"index": index, "row": row}, sort_keys=True, default=str, ensure_ascii=False
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def map_row_to_lead(
    row: Dict[str, Any], agency_id: str, campaigns: Dict[str, str]
) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Map a CSV row to lead columns. Returns (lead_fields, error)."""
    first_name = _clean(row.get("first_name"))
    last_name = _clean(row.get("last_name"))
    full_name = _clean(row.get("full_name")) or _clean(
        f"{first_name or ''} {last_name or ''}"
    )
    email = _clean(row.get("email"))
    phone = _clean(row.get("phone"))

    if not (full_name or email or phone):
        return None, "Row has no name, email or phone"
    if email and not EMAIL_RE.match(email):
        return None, f"Invalid email address: {email}"

    campaign_id = _clean(row.get("campaign_id"))
    campaign_name = _clean(row.get("campaign"))
    if not campaign_id and campaign_name:
        campaign_id = campaigns.get(campaign_name.lower())

    return (
        {
            "agency_id": agency_id,
            "full_name": full_name,
            "first_name": first_name,
            "last_name": last_name,
            "email": email.lower() if email else None,
            "phone": phone,
            "source": _clean(row.get("source")) or "CSV",
            "status": _clean(row.get("status")) or "new",
            "notes": _clean(row.get("notes")),
            "campaign_id": campaign_id,
        },
        None,
    )


def create_import_job(
    db: Session, agency_id: str, user_id: str, filename: str, total_rows: int
) -> models.ImportJob:
    job = models.ImportJob(
        agency_id=agency_id,
        created_by=user_id,
        filename=filename,
        total_rows=total_rows,
        status=IMPORT_PENDING,
        error_details=[],
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info(
        f"Created import job {job.id} for agency {agency_id}: {filename} ({total_rows} rows)"
    )
    return job


def _agency_campaigns(db: Session, agency_id: str) -> Dict[str, str]:
    campaigns = (
        db.query(models.Campaign).filter(models.Campaign.agency_id == agency_id).all()
    )
    return {c.name.lower(): c.id for c in campaigns if c.name}


def process_import_batch(
    db: Session, job: models.ImportJob, rows: List[Dict[str, Any]], offset: int = 0
) -> Dict[str, Any]:
    """Apply one batch of rows to `job`. Commits on success.

    On an unexpected error the transaction is rolled back, the job is marked
    failed and the error is re-raised.
    """
    try:
        return _process_batch(db, job, rows, offset)
    except Exception:
        logger.exception(f"Import batch failed for job {job.id} at offset {offset}")
        db.rollback()
        mark_job_failed(db, job.id)
        raise


def _process_batch(
    db: Session, job: models.ImportJob, rows: List[Dict[str, Any]], offset: int
) -> Dict[str, Any]:
    now = datetime.utcnow()
    if job.status == IMPORT_PENDING:
        job.status = IMPORT_RUNNING
        job.started_at = now

    hashed = [(offset + i, row, row_hash(offset + i, row)) for i, row in enumerate(rows)]

    existing = set()
    hashes = [h for _, _, h in hashed]
    if hashes:
        existing = {
            h
            for (h,) in db.query(models.ImportJobItem.row_hash).filter(
                models.ImportJobItem.import_job_id == job.id,
                models.ImportJobItem.row_hash.in_(hashes),
            )
        }

    new_rows = []
    seen = set()
    for index, row, h in hashed:
        if h in existing or h in seen:
            continue
        seen.add(h)
        new_rows.append((index, row, h))
    skipped = len(rows) - len(new_rows)

    campaigns = _agency_campaigns(db, job.agency_id)
    agency = db.query(models.Agency).filter(models.Agency.id == job.agency_id).one()
    allowance = remaining_lead_allowance(db, agency, now)
    errors = list(job.error_details or [])
    ok = 0
    fail = 0

    for start in range(0, len(new_rows), INSERT_CHUNK):
        chunk = new_rows[start : start + INSERT_CHUNK]
        leads = []
        for index, row, h in chunk:
            fields, error = map_row_to_lead(row, job.agency_id, campaigns)
            if not error and ok >= allowance:
                error = lead_limit_message(agency.plan)
            item = models.ImportJobItem(import_job_id=job.id, row_hash=h)
            if error:
                fail += 1
                item.error = error
                if len(errors) < MAX_ERROR_DETAILS:
                    errors.append(
                        {
                            # 1-based line in the uploaded file, header is line 1
                            "row": index + 2,
                            "error": error,
                            "data": json.dumps(row, default=str, ensure_ascii=False),
                        }
                    )
            else:
                ok += 1
                item.inserted = True
                leads.append(models.Lead(import_job_id=job.id, **fields))
            db.add(item)
        db.add_all(leads)
        db.flush()

    job.success_count = (job.success_count or 0) + ok
    job.error_count = (job.error_count or 0) + fail
    job.processed_rows = job.success_count + job.error_count
    job.error_details = errors

    is_complete = job.processed_rows >= job.total_rows
    if is_complete:
        job.status = IMPORT_COMPLETED_WITH_ERRORS if job.error_count else IMPORT_SUCCEEDED
        job.finished_at = now

    db.commit()
    db.refresh(job)

    logger.info(
        f"Import job {job.id}: batch at offset {offset} -> {ok} ok, {fail} failed, "
        f"{skipped} skipped; {job.processed_rows}/{job.total_rows} processed ({job.status})"
    )

    return {
        "ok": ok,
        "fail": fail,
        "skipped": skipped,
        "total": len(rows),
        "processed_rows": job.processed_rows,
        "is_complete": is_complete,
        "status": job.status,
    }


def mark_job_failed(db: Session, job_id: str) -> None:
    job = db.query(models.ImportJob).filter(models.ImportJob.id == job_id).first()
    if not job:
        return
    job.status = IMPORT_FAILED
    job.finished_at = datetime.utcnow()
    db.commit()


def build_error_report(error_details: List[Dict[str, Any]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["Row", "Error", "Data"])
    for error in error_details or []:
        writer.writerow([error.get("row", ""), error.get("error", ""), error.get("data", "")])
    return output.getvalue()
