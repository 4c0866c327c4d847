"""
Upload an inventory spreadsheet from CLI.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

from app.domain.errors import IngestError, UploadValidationError
from app.domain.inventory import Principal, Role
from app.logging_utils import configure_logging
from app.services.upload_service import get_upload_service
from app.stores.errors import RowStoreError


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a report from a spreadsheet and assign its rows.")
    parser.add_argument("path", type=Path, help="CSV, XLS, XLSX or SpreadsheetML file.")
    parser.add_argument(
        "--user",
        dest="users",
        action="append",
        default=[],
        help="Counter to assign rows to; repeat in block order.",
    )
    parser.add_argument(
        "--uploaded-by",
        dest="uploaded_by",
        default="admin",
        help="Admin username recorded on the report.",
    )
    args = parser.parse_args()

    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    try:
        summary = get_upload_service().upload(
            content=args.path.read_bytes(),
            filename=args.path.name,
            users=args.users,
            uploaded_by=Principal(username=args.uploaded_by, role=Role.ADMIN),
        )
    except (OSError, UploadValidationError, IngestError, RowStoreError) as exc:
        print(f"Upload failed: {exc}", file=sys.stderr)
        return 1

    payload = {
        "report_id": summary.report_id,
        "rows_inserted": summary.rows_inserted,
        "rows_failed": summary.rows_failed,
        "assignments": summary.assignments,
        "validation_errors": [
            {"row_number": error.row_number, "column": error.column, "message": error.message}
            for error in summary.validation_errors
        ],
    }
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
