"""
Apply the idempotent schema patches to DATABASE_URL.
Run: python -m scripts.apply_schema_patches [--dry-run]

--dry-run lists the patches and the columns they would add without
changing anything.
"""
import argparse
import logging
import sys

from toeic_api.db.session import engine
from toeic_api.db.schema_patches import PATCHES, FAILED, apply_all, missing_columns

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def dry_run() -> None:
    missing = missing_columns(engine)
    for patch in PATCHES:
        print(f"{patch.name}: {patch.description}")
        for step in patch.steps:
            print(f"  - {step.describe()}")
    print("\nMissing columns:")
    if not any(missing.values()):
        print("  none")
    for table, columns in missing.items():
        print(f"  {table}: {', '.join(columns)}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Apply schema patches")
    parser.add_argument("--dry-run", action="store_true", help="List patches and missing columns only")
    args = parser.parse_args()

    if args.dry_run:
        dry_run()
        return 0

    reports = apply_all(engine)
    failed = 0
    for report in reports:
        summary = report.to_dict()
        print(f"{summary['name']}: applied={summary['applied']} skipped={summary['skipped']} failed={summary['failed']}")
        failed += report.count(FAILED)

    if failed:
        print(f"\n[WARNING] {failed} step(s) failed; see the log for details")
        return 1
    print("\n[SUCCESS] Schema is up to date")
    return 0


if __name__ == "__main__":
    sys.exit(main())
