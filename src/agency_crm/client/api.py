import logging
import os
from typing import Any, Callable, Dict, List, Optional

import requests
from dotenv import load_dotenv

from src.agency_crm.client.importer import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_POLL_INTERVAL,
    JobProgress,
    UploadProgress,
    apply_column_mapping,
    build_column_mapping,
    poll_import_job,
    read_csv_rows,
    upload_in_batches,
)
from src.agency_crm.utils.seat_helpers import SeatUsage, calculate_seat_usage

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

load_dotenv()

CRM_API_URL = os.getenv("CRM_API_URL", "http://localhost:8000")
CRM_API_TOKEN = os.getenv("CRM_API_TOKEN")


class CRMClientError(Exception):
    """The API answered with an error status or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CRMClient:
    """HTTP client for the agency CRM API using a bearer token."""

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or CRM_API_URL).rstrip("/")
        self.token = token or CRM_API_TOKEN
        self.session = session or requests.Session()
        if self.token:
            self.session.headers["Authorization"] = f"Bearer {self.token}"

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        kwargs.setdefault("timeout", self.DEFAULT_TIMEOUT)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error("Request to %s failed: %s", url, str(e))
            raise CRMClientError(f"Failed to contact CRM API: {e}") from e

        if not response.ok:
            try:
                body = response.json()
                detail = body.get("detail") or body.get("error") or body
            except ValueError:
                detail = response.text[:200]
            logger.error("%s %s returned %s: %s", method, path, response.status_code, detail)
            raise CRMClientError(
                f"CRM API error (status {response.status_code}): {detail}",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        return response.json()

    def create_import_job(self, filename: str, total_rows: int) -> Dict[str, Any]:
        return self._request(
            "POST", "/imports", json={"filename": filename, "total_rows": total_rows}
        )

    def send_import_batch(
        self, job_id: str, rows: List[Dict[str, Any]], offset: int = 0
    ) -> Dict[str, Any]:
        return self._request(
            "POST", f"/imports/{job_id}/rows", json={"rows": rows, "offset": offset}
        )

    def get_import_job(self, job_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/imports/{job_id}")

    def get_seat_usage(self) -> Dict[str, Any]:
        return self._request("GET", "/agencies/me/seats")

    def invite_users(self, emails: List[str], role: str = "agent") -> Dict[str, Any]:
        return self._request("POST", "/invitations", json={"emails": emails, "role": role})

    def import_csv(
        self,
        path: str,
        mapping: Optional[Dict[str, str]] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_upload: Optional[Callable[[UploadProgress], None]] = None,
        on_update: Optional[Callable[[JobProgress], None]] = None,
        timeout: Optional[float] = None,
    ) -> JobProgress:
        """
        Import a CSV file of leads: create the job, upload the rows in
        batches, then poll the job until it finishes.

        Without an explicit `mapping` the columns are matched to lead fields
        by header name.
        """
        headers, rows = read_csv_rows(path)
        mapping = mapping or build_column_mapping(headers)
        mapped_rows = apply_column_mapping(rows, mapping)

        filename = os.path.basename(path)
        job = self.create_import_job(filename, len(mapped_rows))
        job_id = job["id"]
        logger.info(f"Created import job {job_id} for {filename} ({len(mapped_rows)} rows)")

        upload_in_batches(
            mapped_rows,
            lambda chunk, offset: self.send_import_batch(job_id, chunk, offset),
            chunk_size=chunk_size,
            on_progress=on_upload,
        )

        return poll_import_job(
            lambda: self.get_import_job(job_id),
            interval=poll_interval,
            on_update=on_update,
            timeout=timeout,
        )


def check_seats(client: CRMClient, requested: int = 1) -> SeatUsage:
    """Seat usage of the client's agency, logged against `requested` new invites."""
    counts = client.get_seat_usage()
    usage = calculate_seat_usage(
        counts.get("total_seats", 0),
        counts.get("active_members", 0),
        counts.get("pending_invitations", 0),
    )
    logger.info(f"Seat check: {usage.usage_details(requested)}")
    return usage
