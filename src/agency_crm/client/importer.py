"""
Client side of the chunked CSV lead import.

Reads the file with pandas, maps its columns to lead fields, sends the rows
to the API in sequential batches and polls the import job until it reaches
a terminal status. Transport is injected (`send_batch`, `fetch_job`) so the
same pipeline drives the HTTP client and the tests.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd

from src.agency_crm.utils.import_helpers import is_terminal, job_progress_percent

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 800
DEFAULT_POLL_INTERVAL = 1.5

# Normalised header -> lead field
FIELD_ALIASES = {
    "firstname": "first_name",
    "fname": "first_name",
    "first": "first_name",
    "lastname": "last_name",
    "lname": "last_name",
    "last": "last_name",
    "email": "email",
    "emailaddress": "email",
    "mail": "email",
    "phone": "phone",
    "telephone": "phone",
    "mobile": "phone",
    "phonenumber": "phone",
    "source": "source",
    "leadsource": "source",
    "origin": "source",
    "status": "status",
    "leadstatus": "status",
    "state": "status",
    "notes": "notes",
    "comments": "notes",
    "description": "notes",
    "campaign": "campaign",
    "campaignname": "campaign",
    "promo": "campaign",
}


class ImportFileError(Exception):
    """The CSV file is empty or cannot be read."""


class BatchUploadError(Exception):
    """A batch was rejected; the remaining batches were not sent."""

    def __init__(self, message: str, rows_uploaded: int = 0):
        super().__init__(message)
        self.rows_uploaded = rows_uploaded


class PollTimeoutError(Exception):
    """The import job did not reach a terminal status in time."""


@dataclass(frozen=True)
class UploadProgress:
    rows_uploaded: int
    total_rows: int
    percent: float


@dataclass(frozen=True)
class JobProgress:
    status: str
    success: int
    error: int
    total: int
    percent: float

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    @classmethod
    def from_job(cls, job: Dict[str, Any]) -> "JobProgress":
        success = job.get("success_count") or 0
        error = job.get("error_count") or 0
        total = job.get("total_rows") or 0
        return cls(
            status=job.get("status", ""),
            success=success,
            error=error,
            total=total,
            percent=job_progress_percent(success, error, total),
        )


def read_csv_rows(source) -> Tuple[List[str], List[Dict[str, str]]]:
    """
    Read a CSV file into (headers, rows).

    Every value is read as a string; blank cells stay empty strings rather
    than NaN.
    """
    try:
        df = pd.read_csv(source, dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError as e:
        raise ImportFileError("CSV file is empty") from e
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise ImportFileError(f"Could not parse CSV file: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    if df.empty:
        raise ImportFileError("CSV file has no data rows")

    return list(df.columns), df.to_dict(orient="records")


def guess_field_mapping(header: str) -> str:
    """Lead field for a CSV header, or "" when the column should be skipped."""
    normalized = re.sub(r"[^a-z]", "", str(header).lower())
    return FIELD_ALIASES.get(normalized, "")


def build_column_mapping(headers: List[str]) -> Dict[str, str]:
    return {header: guess_field_mapping(header) for header in headers}


def apply_column_mapping(
    rows: List[Dict[str, Any]], mapping: Dict[str, str]
) -> List[Dict[str, Any]]:
    """Rename columns to lead fields and drop unmapped ones.

    When several columns map to the same field the first non-empty value wins.
    """
    mapped_rows = []
    for row in rows:
        mapped = {}
        for header, field in mapping.items():
            if not field:
                continue
            value = row.get(header, "")
            if field not in mapped or (not mapped[field] and value):
                mapped[field] = value
        mapped_rows.append(mapped)
    return mapped_rows


def chunk_rows(rows: List[Any], chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[List[Any]]:
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    return [rows[i : i + chunk_size] for i in range(0, len(rows), chunk_size)]


def upload_in_batches(
    rows: List[Dict[str, Any]],
    send_batch: Callable[[List[Dict[str, Any]], int], Any],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_progress: Optional[Callable[[UploadProgress], None]] = None,
) -> List[Any]:
    """
    Send `rows` in order, one batch at a time.

    `send_batch(chunk, offset)` is called with each chunk and the index of
    its first row. The first failing batch stops the upload; batches already
    sent stay applied.

    Returns:
        The `send_batch` results, one per batch
    """
    chunks = chunk_rows(rows, chunk_size)
    total = len(rows)
    uploaded = 0
    results = []

    logger.info(
        f"Uploading {total} rows in {len(chunks)} batches of up to {chunk_size}"
    )

    for number, chunk in enumerate(chunks, start=1):
        try:
            results.append(send_batch(chunk, uploaded))
        except Exception as e:
            logger.error(
                f"Batch {number}/{len(chunks)} failed after {uploaded} rows: {e}"
            )
            raise BatchUploadError(
                "Import failed. Some rows may already have been imported; "
                "check the import job before retrying.",
                rows_uploaded=uploaded,
            ) from e

        uploaded += len(chunk)
        if on_progress:
            on_progress(
                UploadProgress(
                    rows_uploaded=uploaded,
                    total_rows=total,
                    percent=uploaded / total * 100,
                )
            )

    return results


def poll_import_job(
    fetch_job: Callable[[], Dict[str, Any]],
    interval: float = DEFAULT_POLL_INTERVAL,
    on_update: Optional[Callable[[JobProgress], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
    timeout: Optional[float] = None,
) -> JobProgress:
    """
    Poll the import job every `interval` seconds until it is terminal.

    Fetch errors are logged and polling carries on. With `timeout=None`
    polling never gives up; otherwise PollTimeoutError is raised once
    `timeout` seconds of waiting have passed.
    """
    waited = 0.0
    while True:
        try:
            progress = JobProgress.from_job(fetch_job())
        except Exception as e:
            logger.warning(f"Failed to fetch import job status: {e}")
        else:
            if on_update:
                on_update(progress)
            if progress.is_terminal:
                logger.info(
                    f"Import job finished: {progress.status} "
                    f"({progress.success} ok, {progress.error} failed of {progress.total})"
                )
                return progress

        if timeout is not None and waited >= timeout:
            raise PollTimeoutError(
                f"Import job did not finish within {timeout} seconds"
            )
        sleep(interval)
        waited += interval

