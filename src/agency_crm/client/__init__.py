from .api import CRMClient, CRMClientError, check_seats
from .importer import (
    BatchUploadError,
    ImportFileError,
    JobProgress,
    PollTimeoutError,
    UploadProgress,
    apply_column_mapping,
    build_column_mapping,
    chunk_rows,
    guess_field_mapping,
    poll_import_job,
    read_csv_rows,
    upload_in_batches,
)

__all__ = [
    "CRMClient",
    "CRMClientError",
    "check_seats",
    "BatchUploadError",
    "ImportFileError",
    "JobProgress",
    "PollTimeoutError",
    "UploadProgress",
    "apply_column_mapping",
    "build_column_mapping",
    "chunk_rows",
    "guess_field_mapping",
    "poll_import_job",
    "read_csv_rows",
    "upload_in_batches",
]
