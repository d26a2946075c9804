#!/usr/bin/env python3
"""
Import a delivery schedule spreadsheet (xlsx or csv) into a project.
"""
import argparse
import logging
import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from app.db.database import SessionLocal
from app.services.schedule_import import import_schedule

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


def main():
    parser = argparse.ArgumentParser(description="Import a delivery schedule file")
    parser.add_argument("project_id", help="Project the schedule belongs to")
    parser.add_argument("file", help="Path to the .xlsx or .csv schedule")
    parser.add_argument("--user", default="import", help="Name recorded as creator")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        counts = import_schedule(db, args.project_id, args.file, acting_user=args.user)
        print(
            f"Imported {counts['items']} items on {counts['vehicles']} new vehicles "
            f"({counts['factories']} new factories, {counts['skipped']} skipped, "
            f"{counts['duplicates']} duplicate GUIDs)"
        )
    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
