import pytest

from database.models import User, UserRole, UserStatus
from services.account_directory import AccountDirectory
from core.errors import NotFound, ValidationFailure


def test_first_touch_creates_active_student(database):
    with database.get_session() as db:
        AccountDirectory.upsert_profile(db, "u-1", {"display_name": "Ben", "email": "ben@school.test"})

    with database.get_session() as db:
        user = AccountDirectory.get_profile(db, "u-1")

    assert user.role == UserRole.STUDENT
    assert user.status == UserStatus.ACTIVE
    assert user.display_name == "Ben"
    assert user.created_at is not None
    assert user.last_login == user.created_at


@pytest.mark.parametrize("existing_role", [None, UserRole.STUDENT, UserRole.ADMIN])
def test_upsert_twice_is_idempotent_and_keeps_role(database, make_profile, existing_role):
    if existing_role is not None:
        make_profile("u-2", role=existing_role)

    for _ in range(2):
        with database.get_session() as db:
            AccountDirectory.upsert_profile(db, "u-2", {"program": "BSCS"})

    with database.get_session() as db:
        user = AccountDirectory.get_profile(db, "u-2")
        total = db.query(User).filter(User.uid == "u-2").count()

    assert total == 1
    assert user.program == "BSCS"
    assert user.role == (existing_role or UserRole.STUDENT)


def test_update_refreshes_last_login_but_not_created_at(database, student):
    with database.get_session() as db:
        AccountDirectory.upsert_profile(db, student.uid, {"display_name": "Ana C."})

    with database.get_session() as db:
        user = AccountDirectory.get_profile(db, student.uid)

    assert user.created_at == student.created_at
    assert user.last_login >= student.last_login
    assert user.display_name == "Ana C."
    assert user.program == "BSCS"


def test_upsert_cannot_change_role_or_status_of_existing_profile(database, student):
    with database.get_session() as db:
        AccountDirectory.set_status(db, student.uid, UserStatus.BLOCKED)
        AccountDirectory.upsert_profile(db, student.uid, {"role": "admin", "status": "active"})

    with database.get_session() as db:
        user = AccountDirectory.get_profile(db, student.uid)

    assert user.role == UserRole.STUDENT
    assert user.status == UserStatus.BLOCKED


def test_upsert_rejects_unknown_fields(database):
    with database.get_session() as db:
        with pytest.raises(ValidationFailure):
            AccountDirectory.upsert_profile(db, "u-3", {"favourite_colour": "blue"})


def test_is_admin_requires_active_registry_entry(database, make_profile):
    make_profile("role-only", role=UserRole.ADMIN)
    make_profile("registered", role=UserRole.ADMIN, admin_registry=True)

    with database.get_session() as db:
        assert AccountDirectory.is_admin(db, "registered") is True
        assert AccountDirectory.is_admin(db, "role-only") is False
        assert AccountDirectory.is_admin(db, "nobody") is False
        assert AccountDirectory.is_admin(db, "") is False

        AccountDirectory.grant_admin(db, "registered", active=False)
        assert AccountDirectory.is_admin(db, "registered") is False


def test_list_students_excludes_admins(database, admin, make_profile):
    make_profile("s-b", "Bea")
    make_profile("s-a", "Abe")

    with database.get_session() as db:
        students = AccountDirectory.list_students(db)

    assert [s.uid for s in students] == ["s-a", "s-b"]


def test_set_status_runs_without_any_admin_check(database, student):
    # Authorization is the caller's job; the directory itself executes the write
    with database.get_session() as db:
        user = AccountDirectory.set_status(db, student.uid, "blocked")

    assert user.status == UserStatus.BLOCKED
    assert not user.is_active


def test_set_status_missing_profile(database):
    with database.get_session() as db:
        with pytest.raises(NotFound):
            AccountDirectory.set_status(db, "ghost", UserStatus.BLOCKED)


def test_set_status_rejects_unknown_status(database, student):
    with database.get_session() as db:
        with pytest.raises(ValidationFailure):
            AccountDirectory.set_status(db, student.uid, "suspended")


def test_record_login_appends_event(database, student):
    with database.get_session() as db:
        event = AccountDirectory.record_login(db, student)

    assert event.id is not None
    assert event.user_id == student.uid
    assert event.user_name == "Ana Cruz"
    assert event.role == UserRole.STUDENT
