from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from chococraft import auth, config
from chococraft.main import init_admin_user
from chococraft.models import User

from conftest import PASSWORD


def test_signup_and_login(client):
    created = client.post(
        "/api/signup", json={"username": "carol", "email": "carol@example.com", "password": "s3cretpass"}
    )
    assert created.status_code == 201
    assert created.json()["isAdmin"] is False

    login = client.post("/api/login", json={"username": "carol", "password": "s3cretpass"})

    assert login.status_code == 200
    body = login.json()
    assert body["userId"] == created.json()["id"]
    assert body["isAdmin"] is False
    principal = auth.decode_access_token(body["token"])
    assert principal == {"id": body["userId"], "is_admin": False}


def test_signup_duplicate_username(client, user):
    resp = client.post(
        "/api/signup", json={"username": user.username, "email": "dup@example.com", "password": "s3cretpass"}
    )

    assert resp.status_code == 409
    assert resp.json()["kind"] == "AlreadyExists"


def test_signup_rejects_bad_email(client):
    resp = client.post("/api/signup", json={"username": "dave", "email": "not-an-email", "password": "s3cretpass"})

    assert resp.status_code == 400
    assert resp.json()["field"] == "email"


def test_login_wrong_password(client, user):
    resp = client.post("/api/login", json={"username": user.username, "password": "wrong-password"})

    assert resp.status_code == 401
    assert resp.json() == {"error": "Incorrect username or password", "kind": "Unauthorized"}


def test_admin_login_carries_flag(client, admin):
    resp = client.post("/api/login", json={"username": admin.username, "password": PASSWORD})

    assert resp.json()["isAdmin"] is True


def test_passwords_hashed_with_argon2():
    hashed = auth.get_password_hash("truffle-lover")

    assert hashed.startswith("$argon2")
    assert auth.verify_password("truffle-lover", hashed)
    assert not auth.verify_password("truffle-hater", hashed)


def test_garbage_token_rejected(client):
    resp = client.get("/api/cart", headers={"Authorization": "Bearer not.a.token"})

    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid or expired token"


def test_expired_token_rejected(client, user):
    expired = jwt.encode(
        {"sub": str(user.id), "is_admin": False, "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        config.SECRET_KEY,
        algorithm=config.ALGORITHM,
    )

    resp = client.get("/api/cart", headers={"Authorization": f"Bearer {expired}"})

    assert resp.status_code == 401


def test_token_without_subject_rejected():
    token = jwt.encode({"is_admin": True}, config.SECRET_KEY, algorithm=config.ALGORITHM)

    with pytest.raises(ValueError):
        auth.decode_access_token(token)


def test_admin_user_list(client, user, admin_headers, user_headers):
    resp = client.get("/api/admin/users", headers=admin_headers)

    assert resp.status_code == 200
    assert {u["username"] for u in resp.json()} == {"alice", "admin"}
    assert client.get("/api/admin/users", headers=user_headers).status_code == 403


def test_bootstrap_admin_created_once(db, monkeypatch):
    monkeypatch.setattr(config, "ADMIN_USERNAME", "owner")
    monkeypatch.setattr(config, "ADMIN_PASSWORD", "owner-password")

    init_admin_user(db)
    init_admin_user(db)

    admins = db.query(User).filter(User.username == "owner").all()
    assert len(admins) == 1
    assert admins[0].is_admin is True
    assert auth.verify_password("owner-password", admins[0].hashed_password)


def test_bootstrap_admin_promotes_existing_user(db, user, monkeypatch):
    monkeypatch.setattr(config, "ADMIN_USERNAME", user.username)
    monkeypatch.setattr(config, "ADMIN_PASSWORD", "whatever-password")

    init_admin_user(db)

    db.refresh(user)
    assert user.is_admin is True


def test_bootstrap_admin_skipped_without_credentials(db):
    init_admin_user(db)

    assert db.query(User).count() == 0
