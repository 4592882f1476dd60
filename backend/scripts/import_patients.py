"""
Bulk patient registration from a CSV file.

Each line is ``patientId, name`` (no header). Blank lines are ignored and
malformed lines are skipped and reported. Existing patients get the new name;
their LINE link is kept.

Usage:
    python scripts/import_patients.py patients.csv
    python scripts/import_patients.py patients.csv --encoding cp932
"""
import argparse
import sys
import os

# Add the parent directory to sys.path to allow imports from src
sys.path.append(os.path.join(os.path.dirname(__file__), '../src'))

from core.database import SessionLocal
from services.patient_service import PatientService


def main():
    parser = argparse.ArgumentParser(description="Import patients from a 'patientId, name' CSV file.")
    parser.add_argument("path", help="CSV file to import")
    parser.add_argument("--encoding", default="utf-8-sig", help="File encoding (default: utf-8-sig)")

    args = parser.parse_args()

    print(f"Importing patients from {args.path}...")
    db = SessionLocal()
    try:
        with open(args.path, encoding=args.encoding) as f:
            result = PatientService.import_patients(db, f.read())

        print(f"Imported {result.imported} patients.")
        if result.skipped:
            print(f"Skipped {result.skipped} malformed lines: {', '.join(map(str, result.skipped_lines))}")
        print("Import Completed Successfully.")
    except Exception as e:
        print(f"Error during import: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
