"""CLI script to load scholarships from a JSON file into the backend DB.
Usage: python scripts/import_scholarships.py scholarships.json [--dry-run]

The file holds a list of objects using the same fields as
`POST /scholarships`. Invalid items are reported and skipped.
"""
import sys
import json
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `scholarstream` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from pydantic import ValidationError
from scholarstream.config import settings
from scholarstream.database import Database
from scholarstream.schemas import ScholarshipIn
from scholarstream import services


def main(path: pathlib.Path, dry_run: bool = False):
    """Validate every item in `path` and create the valid ones.

    Results are printed to stdout for a quick CLI feedback loop.
    """
    if not path.exists():
        print(f'File not found: {path}')
        return
    items = json.loads(path.read_text(encoding='utf-8'))
    if not isinstance(items, list):
        print('Expected a JSON list of scholarships')
        return
    database = Database(settings.DATABASE_URL)
    database.create_all()
    created = 0
    errors = 0
    with database.session() as session:
        svc = services.ScholarshipService(session)
        for idx, item in enumerate(items):
            try:
                payload = ScholarshipIn(**item)
            except (TypeError, ValidationError) as e:
                errors += 1
                print(f'Item {idx}: invalid ({e})')
                continue
            if dry_run:
                continue
            s = svc.create(payload)
            created += 1
            print(f'Created scholarship {s.id}: {s.scholarship_name} ({s.university_name})')
    print(f'Total created: {created}, invalid: {errors}{" (dry run)" if dry_run else ""}')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('path', type=pathlib.Path, help='JSON file with a list of scholarships')
    parser.add_argument('--dry-run', action='store_true', help='Validate only, do not write')
    args = parser.parse_args()
    main(args.path, dry_run=args.dry_run)
