"""
Import job status helpers shared by the batch processor and the client poller.
"""

# Import job statuses
IMPORT_PENDING = "pending"
IMPORT_RUNNING = "running"
IMPORT_SUCCEEDED = "succeeded"
IMPORT_COMPLETED_WITH_ERRORS = "completed_with_errors"
IMPORT_FAILED = "failed"

TERMINAL_IMPORT_STATUSES = frozenset(
    {IMPORT_SUCCEEDED, IMPORT_COMPLETED_WITH_ERRORS, IMPORT_FAILED}
)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_IMPORT_STATUSES


def job_progress_percent(success: int, errors: int, total: int) -> float:
    """Percent of rows accounted for: (success + error) / total, capped at 100."""
    if not total or total <= 0:
        return 0.0
    return min(100.0, ((success or 0) + (errors or 0)) / total * 100)
