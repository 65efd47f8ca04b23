import database
from auth import UserSession, hash_password, verify_password
from errors import AuthenticationError, DuplicateError, StorageCapacityError, ValidationError
from repositories import Repositories


def make_session(store, notes):
    return UserSession(Repositories(store), notes)


def test_hash_is_salted_and_one_way():
    salt1, h1 = hash_password("secret1")
    salt2, h2 = hash_password("secret1")
    assert salt1 != salt2
    assert h1 != h2
    assert "secret1" not in h1
    assert verify_password("secret1", salt1, h1)
    assert not verify_password("secret2", salt1, h1)


def test_verify_rejects_foreign_salt():
    assert not verify_password("secret1", "not-hex", "abc")


def test_register_stores_only_credential_material(store, notes):
    session = make_session(store, notes)
    outcome = session.register("  Ada  ", " Ada@Example.com ", "comp-sci", "secret1")
    assert outcome.ok
    user = outcome.value
    assert user.name == "Ada"
    assert user.email == "ada@example.com"
    raw = store.get(database.USERS)[0]
    assert "password" not in raw
    assert raw["password_hash"] != "secret1"
    assert notes.last() == ("Account created successfully! Please login.", "success")


def test_register_does_not_log_in(store, notes):
    session = make_session(store, notes)
    session.register("Ada", "ada@example.com", "comp-sci", "secret1")
    assert session.current_user() is None


def test_register_requires_all_fields(store, notes):
    outcome = make_session(store, notes).register("Ada", "ada@example.com", "", "secret1")
    assert isinstance(outcome.error, ValidationError)
    assert notes.last() == ("Please fill in all fields", "error")


def test_register_rejects_malformed_email(store, notes):
    for email in ("ada", "ada@example", "a da@example.com", "@example.com"):
        outcome = make_session(store, notes).register("Ada", email, "comp-sci", "secret1")
        assert isinstance(outcome.error, ValidationError), email


def test_register_rejects_short_password(store, notes):
    outcome = make_session(store, notes).register("Ada", "ada@example.com", "comp-sci", "12345")
    assert isinstance(outcome.error, ValidationError)
    assert store.get(database.USERS) == []


def test_register_rejects_duplicate_email_case_insensitively(store, notes):
    session = make_session(store, notes)
    assert session.register("Ann", "a@x.com", "comp-sci", "secret1")
    outcome = session.register("Ann Again", "A@x.com", "physics", "secret2")
    assert isinstance(outcome.error, DuplicateError)
    assert len(store.get(database.USERS)) == 1


def test_register_surfaces_storage_failure(store, notes):
    store.quota_bytes = store.size_bytes()
    outcome = make_session(store, notes).register("Ada", "ada@example.com", "comp-sci", "secret1")
    assert isinstance(outcome.error, StorageCapacityError)
    assert store.get(database.USERS) == []


def test_login_sets_pointer_and_last_login(store, notes):
    session = make_session(store, notes)
    registered = session.register("Ada", "ada@example.com", "comp-sci", "secret1").value
    outcome = session.login("ADA@example.com", "secret1")
    assert outcome.ok
    assert store.get(database.CURRENT_USER) == registered.id
    assert session.current_user().id == registered.id
    assert session.current_user().last_login >= registered.last_login
    assert notes.last() == ("Welcome back, Ada!", "success")


def test_login_failures_are_generic(store, notes):
    session = make_session(store, notes)
    session.register("Ada", "ada@example.com", "comp-sci", "secret1")
    wrong_password = session.login("ada@example.com", "wrong!!")
    unknown_user = session.login("bob@example.com", "secret1")
    assert isinstance(wrong_password.error, AuthenticationError)
    assert isinstance(unknown_user.error, AuthenticationError)
    assert wrong_password.message == unknown_user.message == "Invalid credentials"
    assert session.current_user() is None


def test_login_validates_input(store, notes):
    session = make_session(store, notes)
    assert isinstance(session.login("", "x").error, ValidationError)
    assert isinstance(session.login("not-an-email", "secret1").error, ValidationError)


def test_logout_clears_pointer(store, notes):
    session = make_session(store, notes)
    session.register("Ada", "ada@example.com", "comp-sci", "secret1")
    session.login("ada@example.com", "secret1")
    session.logout()
    assert session.current_user() is None
    assert store.get(database.CURRENT_USER) is None


def test_pointer_to_missing_user_reads_as_logged_out(store, notes):
    store.set(database.CURRENT_USER, "ghost")
    session = make_session(store, notes)
    assert session.current_user() is None
    outcome = session.require_user()
    assert isinstance(outcome.error, AuthenticationError)


def test_failed_login_changes_nothing(store, notes):
    session = make_session(store, notes)
    registered = session.register("Ada", "ada@example.com", "comp-sci", "secret1").value
    store.quota_bytes = store.size_bytes()
    outcome = session.login("ada@example.com", "secret1")
    assert isinstance(outcome.error, StorageCapacityError)
    assert store.get(database.CURRENT_USER) is None
    assert session.repos.users.find_by_id(registered.id).last_login == registered.last_login
