"""
Create or reset a reception staff account.

Usage:
    python scripts/create_staff_user.py --email reception@example.com --name 受付
    (the password is prompted for)
"""
import argparse
import getpass
import sys
import os

# Add the parent directory to sys.path to allow imports from src
sys.path.append(os.path.join(os.path.dirname(__file__), '../src'))

from core.database import SessionLocal
from models import StaffUser
from services.jwt_service import jwt_service


def main():
    parser = argparse.ArgumentParser(description="Create or reset a staff account.")
    parser.add_argument("--email", required=True, help="Login email")
    parser.add_argument("--name", required=True, help="Display name")
    parser.add_argument("--deactivate", action="store_true", help="Disable the account instead")

    args = parser.parse_args()
    email = args.email.strip().lower()

    db = SessionLocal()
    try:
        staff_user = db.query(StaffUser).filter(StaffUser.email == email).first()

        if args.deactivate:
            if not staff_user:
                print(f"No staff account for {email}")
                sys.exit(1)
            staff_user.is_active = False
            db.commit()
            print(f"Deactivated {email}")
            return

        password = getpass.getpass("Password: ")
        if len(password) < 8:
            print("Password must be at least 8 characters")
            sys.exit(1)

        if staff_user:
            staff_user.password_hash = jwt_service.hash_password(password)
            staff_user.display_name = args.name
            staff_user.is_active = True
            print(f"Updated staff account {email}")
        else:
            db.add(StaffUser(
                email=email,
                password_hash=jwt_service.hash_password(password),
                display_name=args.name,
                is_active=True,
            ))
            print(f"Created staff account {email}")
        db.commit()
    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
