"""Bootstrap a staff account for the press ledger.

Usage:
  python scripts/create_admin.py --username admin --email admin@pressworks.ng --password secret
  python scripts/create_admin.py --username ada --role worker --full-name "Ada Obi"
  python scripts/create_admin.py --username admin --reset-password

Values not given on the command line are read from ADMIN_USERNAME,
ADMIN_EMAIL, ADMIN_PASSWORD and ADMIN_FULL_NAME, then prompted for.
"""
import os
import argparse
import sys
from getpass import getpass

from press_core.app.db import SessionLocal, create_db_and_tables
from press_core.app.deps import get_password_hash
from press_core.app.logging_config import setup_logging, get_logger
from press_core.app import models

logger = get_logger("scripts.create_admin")

ROLES = [r.value for r in models.UserRole]


def upsert_staff(db, username, email, password, full_name, role, reset_password=False):
    """
    Create the account, or with reset_password set the password of an
    existing one. Returns (user, created). An existing account is never
    otherwise modified.
    """
    user = db.query(models.User).filter(models.User.username == username).first()
    if user:
        if not reset_password:
            logger.warning("User already exists: %s (use --reset-password to change it)", username)
            return user, False
        user.password_hash = get_password_hash(password)
        user.is_active = True
        db.commit()
        logger.info("Password reset for %s", username)
        return user, False

    if db.query(models.User).filter(models.User.email == email).first():
        raise ValueError(f"Email {email} is already used by another account")

    user = models.User(
        full_name=full_name,
        email=email,
        username=username,
        password_hash=get_password_hash(password),
        role=role,
    )
    db.add(user)
    db.commit()
    logger.info("Created %s account: %s", role, username)
    return user, True


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create or reset a staff account")
    parser.add_argument('--username')
    parser.add_argument('--email')
    parser.add_argument('--password')
    parser.add_argument('--full-name', dest='full_name')
    parser.add_argument('--role', choices=ROLES, default=models.UserRole.ADMIN.value)
    parser.add_argument('--reset-password', action='store_true')
    args = parser.parse_args(argv)

    setup_logging()

    username = args.username or os.getenv('ADMIN_USERNAME') or input('Username: ').strip()
    password = args.password or os.getenv('ADMIN_PASSWORD') or getpass('Password: ')
    email = None
    if not args.reset_password:
        email = args.email or os.getenv('ADMIN_EMAIL') or input('Email: ').strip()
    full_name = args.full_name or os.getenv('ADMIN_FULL_NAME') or username.title()

    if len(password) < 6:
        logger.error("Password must be at least 6 characters")
        return 1

    create_db_and_tables()
    db = SessionLocal()
    try:
        upsert_staff(db, username, email, password, full_name, args.role, args.reset_password)
    except ValueError as e:
        logger.error("%s", e)
        return 1
    finally:
        db.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
