"""
Script: import_leads.py
Import a CSV file of leads into the caller's agency through the API.
Usage:
    python scripts/import_leads.py leads.csv --api-url http://localhost:8000 --token <jwt>

This script:
- reads the CSV and maps its headers to lead fields
- creates an import job and uploads the rows in batches
- polls the job until it finishes and prints the final counts

CRM_API_URL and CRM_API_TOKEN are used when the flags are omitted.
Run from repository root.
"""

import argparse
import os
import sys

# Ensure project root is importable
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from src.agency_crm.client import (
    BatchUploadError,
    CRMClient,
    CRMClientError,
    ImportFileError,
    PollTimeoutError,
)
from src.agency_crm.client.importer import DEFAULT_CHUNK_SIZE, DEFAULT_POLL_INTERVAL


def print_upload(progress):
    print(
        f"Uploading... {progress.rows_uploaded}/{progress.total_rows} rows "
        f"({progress.percent:.0f}%)"
    )


def print_job(progress):
    print(
        f"Processing... {progress.status}: {progress.success} ok, "
        f"{progress.error} failed of {progress.total} ({progress.percent:.0f}%)"
    )


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Import leads from a CSV file")
    p.add_argument("path", help="CSV file to import")
    p.add_argument("--api-url", default=None, help="CRM API base URL")
    p.add_argument("--token", default=None, help="Bearer token")
    p.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)
    p.add_argument("--interval", type=float, default=DEFAULT_POLL_INTERVAL)
    p.add_argument(
        "--timeout", type=float, default=None, help="Stop polling after N seconds"
    )
    args = p.parse_args(argv)

    client = CRMClient(base_url=args.api_url, token=args.token)
    try:
        result = client.import_csv(
            args.path,
            chunk_size=args.chunk_size,
            poll_interval=args.interval,
            on_upload=print_upload,
            on_update=print_job,
            timeout=args.timeout,
        )
    except ImportFileError as e:
        print(f"Invalid file: {e}")
        return 2
    except BatchUploadError as e:
        print(f"{e} ({e.rows_uploaded} rows uploaded before the failure)")
        return 1
    except (CRMClientError, PollTimeoutError) as e:
        print(f"Error: {e}")
        return 1

    print(
        f"Import {result.status}: {result.success} imported, {result.error} failed"
    )
    return 0 if result.status != "failed" else 1


if __name__ == "__main__":
    sys.exit(main())
