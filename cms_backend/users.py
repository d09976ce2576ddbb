"""
User records for the admin login.
"""

from __future__ import annotations

from typing import Optional

from cms_backend.db import DbClient
from cms_backend.entities import USERS_COLLECTION
from cms_backend.errors import DuplicateKeyError, ValidationError
from cms_backend.security import get_password_hash, verify_password


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_user(db: DbClient, email: str) -> Optional[dict]:
    return db.find_one(USERS_COLLECTION, {"email": normalize_email(email)})


def create_user(db: DbClient, name: str, email: str, password: str) -> dict:
    if not name.strip():
        raise ValidationError("Name is required")
    try:
        return db.insert(
            USERS_COLLECTION,
            {
                "name": name.strip(),
                "email": normalize_email(email),
                "password": get_password_hash(password),
            },
        )
    except DuplicateKeyError as exc:
        raise DuplicateKeyError(
            exc.collection, exc.path, exc.value, message="Email already exists"
        ) from exc


def authenticate(user: dict, password: str) -> bool:
    return verify_password(password, user.get("password", ""))
