"""CLI script to set a user's role directly in the DB.
Usage: python scripts/grant_role.py EMAIL ROLE [--name NAME]

Role changes normally go through the admin dashboard, which needs an
existing admin; this bootstraps the first one. The user is registered
first if the email is unknown.
"""
import sys
import argparse
import pathlib
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from scholarstream.config import settings
from scholarstream.database import Database
from scholarstream.errors import ScholarStreamError
from scholarstream import services


def main(email: str, role: str, name: str = None) -> int:
    database = Database(settings.DATABASE_URL)
    database.create_all()
    with database.session() as session:
        svc = services.UserService(session)
        user, created = svc.register(email, name)
        try:
            user = svc.change_role(user.id, role)
        except ScholarStreamError as e:
            print(f'Error: {e}')
            return 1
        print(f'{"Created" if created else "Updated"} {user.email}: role={user.role}')
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('email')
    parser.add_argument('role', help='student, moderator or admin')
    parser.add_argument('--name', default=None)
    args = parser.parse_args()
    sys.exit(main(args.email, args.role, name=args.name))
