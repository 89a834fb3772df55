import base64

import pytest

from otp_backend import create_app
from otp_store import lookup_user

from .conftest import RFC_CODES, RFC_KEY_HEX


@pytest.fixture
def users_path(write_users):
    return write_users("# users", f"HOTP alice 1234 {RFC_KEY_HEX} 0")


@pytest.fixture
def client(users_path):
    app = create_app({"TESTING": True, "OTP_AUTH_USERS_FILE": users_path, "OTP_AUTH_REALM": "Test Realm"})
    return app.test_client()


def _basic(username, password):
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {token}"}


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_verify_granted(client, users_path):
    response = client.post("/api/verify", json={"username": "alice", "otp": "1234" + RFC_CODES[0]})
    assert response.status_code == 200
    assert response.get_json() == {"valid": True}
    assert lookup_user(users_path, "alice").offset == 1


def test_verify_denied_and_unknown_look_alike(client):
    denied = client.post("/api/verify", json={"username": "alice", "otp": "1234000000"})
    unknown = client.post("/api/verify", json={"username": "bob", "otp": "1234000000"})
    assert denied.status_code == unknown.status_code == 401
    assert denied.get_json() == unknown.get_json() == {"valid": False}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"data": "not json", "content_type": "text/plain"},
        {"json": ["alice"]},
        {"json": {"username": "alice"}},
        {"json": {"username": "", "otp": "1"}},
        {"json": {"username": "alice", "otp": 123456}},
    ],
)
def test_verify_bad_request(client, kwargs):
    assert client.post("/api/verify", **kwargs).status_code == 400


def test_verify_general_error(tmp_path):
    app = create_app({"TESTING": True, "OTP_AUTH_USERS_FILE": str(tmp_path / "absent.txt")})
    response = app.test_client().post("/api/verify", json={"username": "alice", "otp": "1234755224"})
    assert response.status_code == 500
    assert response.get_json()["valid"] is False


def test_whoami_basic_auth(client):
    response = client.get("/api/whoami", headers=_basic("alice", "1234" + RFC_CODES[0]))
    assert response.status_code == 200
    assert response.get_json() == {"user": "alice"}


def test_whoami_challenges(client):
    response = client.get("/api/whoami")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == 'Basic realm="Test Realm"'

    response = client.get("/api/whoami", headers=_basic("alice", "wrong"))
    assert response.status_code == 401


def test_config_from_environment(monkeypatch, users_path):
    monkeypatch.setenv("OTP_AUTH_USERS_FILE", users_path)
    monkeypatch.setenv("OTP_AUTH_MAX_OFFSET", "7")
    app = create_app({"TESTING": True})
    config = app.extensions["otp_config"]
    assert config.users_file == users_path
    assert config.max_offset == 7
    assert config.max_linger == 600


def test_bad_config_fails_at_startup(monkeypatch):
    monkeypatch.setenv("OTP_AUTH_MAX_LINGER", "ten minutes")
    with pytest.raises(ValueError):
        create_app({"TESTING": True})
