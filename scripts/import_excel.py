import argparse
import json
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running this script directly.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from app.config import get_settings
from app.core.errors import ImportAbortedError, UploadImportError
from app.core.logging import setup_logging
from app.database import init_db
from app.services.asset_service import reconcile_pending_media
from app.services.uploads_service import ImportConfig, ImportJobInput, import_file


def parse_args():
    parser = argparse.ArgumentParser(
        description="Import catalog products from the first sheet of an Excel or CSV file."
    )
    parser.add_argument("--path", help="Path to .xlsx/.xlsm/.csv file.")
    parser.add_argument(
        "--index",
        help='Field to column letter mapping as JSON, e.g. \'{"name": "C", "images": "I"}\'.',
    )
    parser.add_argument("--batch-size", type=int, default=None, help="Rows per transaction.")
    parser.add_argument("--width", type=int, default=None, help="Maximum image width.")
    parser.add_argument("--height", type=int, default=None, help="Maximum image height.")
    parser.add_argument(
        "--required",
        default=None,
        help="Comma separated required fields. Default: IMPORT_REQUIRED_FIELDS.",
    )
    parser.add_argument(
        "--image-source-dir",
        default=None,
        help="Directory that image file names in cells are resolved against.",
    )
    parser.add_argument(
        "--reconcile",
        action="store_true",
        help="Finish or retire products with pending media instead of importing.",
    )
    args = parser.parse_args()
    if not args.reconcile and (not args.path or not args.index):
        parser.error("--path and --index are required unless --reconcile is given")
    return args


def parse_index(raw):
    try:
        mapping = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SystemExit(f"--index is not valid JSON: {exc}") from exc
    if not isinstance(mapping, dict):
        raise SystemExit("--index must be a JSON object")
    return {str(key): str(value) for key, value in mapping.items()}


def main():
    setup_logging()
    args = parse_args()
    init_db()

    if args.reconcile:
        report = reconcile_pending_media()
        print(f"Reconciled media: {report.completed} completed, {report.lost} lost, {report.failed} failed")
        return

    try:
        config = ImportConfig.from_settings(
            batch_size=args.batch_size,
            image_width=args.width,
            image_height=args.height,
            required_fields=args.required,
        )
    except ValueError as exc:
        raise SystemExit(f"Invalid options: {exc}") from exc

    job_input = ImportJobInput(
        file_path=args.path,
        column_mapping=parse_index(args.index),
        config=config,
        image_source_dir=args.image_source_dir or get_settings().IMPORT_IMAGE_SOURCE_DIR,
    )
    try:
        summary = import_file(job_input)
    except ImportAbortedError as exc:
        if exc.summary is not None:
            print(json.dumps(exc.summary.to_dict(), indent=2))
        raise SystemExit(f"Import aborted: {exc}") from exc
    except UploadImportError as exc:
        raise SystemExit(f"Import failed: {exc}") from exc

    print(
        f"{summary.created} created, {summary.skipped} skipped, "
        f"{summary.rejected} rejected, {summary.failed_rows} failed "
        f"({summary.failed_batches} batches) of {summary.total_rows} rows"
    )
    print(f"Import {summary.status} (job {summary.job_id}).")


if __name__ == "__main__":
    main()
