"""
Seed the user store with sample admin accounts.

Existing emails are skipped, so the script is safe to re-run.
"""

from __future__ import annotations

import argparse
import logging
import sys

from cms_backend.config import get_settings
from cms_backend.dependencies import get_db_client
from cms_backend.errors import DuplicateKeyError
from cms_backend.users import create_user, find_user

logger = logging.getLogger(__name__)

SAMPLE_USERS = (
    ("Admin User", "admin@example.com", "admin123"),
    ("Test User", "test@example.com", "test123"),
    ("John Doe", "john@example.com", "password123"),
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Insert sample CMS users")
    parser.add_argument(
        "--show-credentials",
        action="store_true",
        help="Print the sample passwords after seeding",
    )
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    if not settings.database_url:
        logger.error("DATABASE_URL is not set; refusing to seed an in-memory store")
        return 1

    db = get_db_client()
    inserted = 0
    for name, email, password in SAMPLE_USERS:
        if find_user(db, email):
            logger.warning("User with email %s already exists. Skipping...", email)
            continue
        try:
            user = create_user(db, name, email, password)
        except DuplicateKeyError:
            logger.warning("User with email %s already exists. Skipping...", email)
            continue
        inserted += 1
        logger.info("Created user: %s (%s)", user["name"], user["email"])

    logger.info("Seed completed! %d user(s) inserted.", inserted)
    if args.show_credentials:
        for _, email, password in SAMPLE_USERS:
            print(f"Email: {email}  Password: {password}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
