#!/usr/bin/env python3
"""
Run a CSV page import against a running server, one batch per request.

Either drive an existing import session:

    python scripts/run_import.py --import-id 3f1c...

or upload a CSV file, create the session and drive it:

    python scripts/run_import.py --csv products.csv --template-id 2 \\
        --parent-id 1 --mapping title,sku,price --policy modify

Ctrl-C cancels after the batch in flight has finished.
"""

import argparse
import signal
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx

from csvimport.services.import_client import BatchImportClient, counter_text

DEFAULT_API_URL = "http://localhost:8000"


def create_session(client: httpx.Client, prefix: str, args: argparse.Namespace) -> str:
    """Upload the CSV file and create an import session for it."""
    with open(args.csv, "rb") as handle:
        response = client.post(
            f"{prefix}/imports/upload",
            files={"file": (Path(args.csv).name, handle, "text/csv")},
        )
    response.raise_for_status()
    source_path = response.json()["source_path"]

    payload = {
        "template_id": args.template_id,
        "parent_id": args.parent_id,
        "source_path": source_path,
        "column_mapping": args.mapping.split(","),
        "delimiter": args.delimiter,
        "enclosure": args.enclosure,
        "duplicate_policy": args.policy,
        "create_missing_references": args.create_references,
        "max_rows": args.max_rows,
    }
    if args.batch_size is not None:
        payload["batch_size"] = args.batch_size

    response = client.post(f"{prefix}/imports", json=payload)
    if response.status_code >= 400:
        print(f"Import rejected: {response.json().get('detail')}")
        sys.exit(1)

    summary = response.json()
    print(
        f"Created import {summary['import_id']}: {summary['num_rows']} row(s) "
        f"in {summary['num_batches']} batch(es)"
    )
    return summary["import_id"]


def main():
    parser = argparse.ArgumentParser(description="Import pages from a CSV file in batches")
    parser.add_argument("--api-url", type=str, default=DEFAULT_API_URL)
    parser.add_argument("--prefix", type=str, default="/api/v1")
    parser.add_argument("--import-id", type=str, help="Existing import session to run")
    parser.add_argument("--csv", type=str, help="CSV file to upload")
    parser.add_argument("--template-id", type=int)
    parser.add_argument("--parent-id", type=int)
    parser.add_argument("--mapping", type=str, default="", help="Field per column, comma separated")
    parser.add_argument("--delimiter", type=str, default=",")
    parser.add_argument("--enclosure", type=str, default='"')
    parser.add_argument(
        "--policy", choices=["skip", "create_unique", "modify"], default="skip"
    )
    parser.add_argument("--create-references", action="store_true")
    parser.add_argument(
        "--max-rows", type=int, default=0, help="Stop after this file line (header is line 1)"
    )
    parser.add_argument("--batch-size", type=int)

    args = parser.parse_args()

    if not args.import_id and not (args.csv and args.template_id):
        parser.error("either --import-id or --csv with --template-id is required")

    canceled = False

    def cancel(signum, frame):
        nonlocal canceled
        if not canceled:
            print("Canceling after the current batch...")
        canceled = True

    signal.signal(signal.SIGINT, cancel)

    def show_batch(batch, data, report):
        if "numImported" in data:
            print(f"Batch {batch + 1}: {data['numImported']} row(s) processed {data['usage']}")
        for row in data.get("rows") or []:
            print(f"  {row}")
        if "error" in data:
            print(f"Error: {data['error']}")
        elif data.get("counter"):
            print(f"  {counter_text(data['counter'])}")

    with BatchImportClient(args.api_url, prefix=args.prefix) as importer:
        import_id = args.import_id or create_session(importer.client, importer.prefix, args)
        report = importer.run(import_id, on_batch=show_batch, is_canceled=lambda: canceled)

    print("=" * 60)
    if report.error and not report.responses:
        print(f"Error: {report.error}")
    if report.canceled:
        print("Import canceled")
    print(f"Total number of processed rows: {report.num_imported}")

    if report.error:
        sys.exit(1)


if __name__ == "__main__":
    main()
