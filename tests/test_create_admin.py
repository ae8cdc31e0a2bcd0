import pytest

from press_core.app.deps import verify_password
from scripts.create_admin import upsert_staff


def test_creates_account(db):
    user, created = upsert_staff(db, "boss", "boss@pressworks.ng", "secret123", "Boss", "admin")
    assert created
    assert user.role == "admin"
    assert verify_password("secret123", user.password_hash)


def test_existing_account_left_alone(db):
    upsert_staff(db, "boss", "boss@pressworks.ng", "secret123", "Boss", "admin")
    user, created = upsert_staff(db, "boss", "other@pressworks.ng", "changed1", "Boss", "admin")
    assert not created
    assert verify_password("secret123", user.password_hash)


def test_reset_password(db):
    upsert_staff(db, "ada", "ada@pressworks.ng", "secret123", "Ada", "worker")
    user, created = upsert_staff(db, "ada", None, "newpass99", "Ada", "worker", reset_password=True)
    assert not created
    assert verify_password("newpass99", user.password_hash)


def test_email_collision(db):
    upsert_staff(db, "ada", "ada@pressworks.ng", "secret123", "Ada", "worker")
    with pytest.raises(ValueError):
        upsert_staff(db, "ada2", "ada@pressworks.ng", "secret123", "Ada Two", "worker")
