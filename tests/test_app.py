import json

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from envmonitor.app import create_app, main
from envmonitor.config import Config, JWTConfig
from envmonitor.crud import DELETED_MESSAGE
from envmonitor.errors import ErrorCode, payload
from envmonitor.models import Base, Device, User

PASSWORD = "password"


def _status(error):
    return payload(None, error)["status"]


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def app(session_factory):
    config = Config(jwt=JWTConfig(secret="secret", expires=3600))
    return create_app(config, session_factory, None)


def _register(client, username, password=PASSWORD):
    return client.post("/auth/register", json={"username": username, "password": password})


def _login(client, username, password=PASSWORD):
    return client.post("/auth/login", json={"username": username, "password": password})


def _make_admin(session_factory, username):
    with session_factory() as session:
        user = session.scalars(select(User).where(User.username == username)).one()
        user.is_admin = True
        session.commit()


@pytest.fixture
def admin_client(app, session_factory):
    client = app.test_client()
    _register(client, "root")
    _make_admin(session_factory, "root")
    _login(client, "root")
    return client


@pytest.fixture
def user_client(app):
    client = app.test_client()
    _register(client, "alice")
    _login(client, "alice")
    return client


def _create_device(client, device_id="dev-0001"):
    response = client.post("/devices/", json={"device_id": device_id, "secret": "secret"})
    return response.get_json()["data"]


def test_mongo_client_is_kept(session_factory):
    marker = object()
    app = create_app(Config(), session_factory, marker)
    assert app.extensions["mongo"] is marker


def test_register_and_login(app):
    client = app.test_client()
    registered = _register(client, "bob")
    assert registered.status_code == ErrorCode.OK.http_code
    assert registered.get_json()["data"]["username"] == "bob"

    response = _login(client, "bob")
    body = response.get_json()
    assert body["status"] == _status(ErrorCode.OK)
    assert body["data"]["username"] == "bob"
    assert "Authorization=" in response.headers["Set-Cookie"]


def test_register_twice(app):
    client = app.test_client()
    _register(client, "bob")
    response = _register(client, "bob")
    assert response.get_json()["status"] == _status(ErrorCode.USER_EXISTS)


def test_login_wrong_password(app):
    client = app.test_client()
    _register(client, "bob")
    response = client.post("/auth/login", json={"username": "bob", "password": "token"})
    assert response.status_code == ErrorCode.INCORRECT_AUTH_INFO.http_code
    assert response.get_json()["status"] == _status(ErrorCode.INCORRECT_AUTH_INFO)


def test_login_when_logged_in(user_client):
    response = _login(user_client, "alice")
    assert response.get_json()["status"] == _status(ErrorCode.ALREADY_LOGGED_IN)


def test_requires_login(app):
    response = app.test_client().get("/devices/my_devices")
    assert response.status_code == ErrorCode.UNAUTHORIZED.http_code
    assert response.get_json()["status"] == _status(ErrorCode.UNAUTHORIZED)


def test_logout_requires_login(app):
    response = app.test_client().post("/auth/logout")
    assert response.get_json()["status"] == _status(ErrorCode.UNAUTHORIZED)


def test_logout_clears_cookie(user_client):
    response = user_client.post("/auth/logout")
    assert response.get_json()["status"] == _status(ErrorCode.OK)
    assert "Authorization=;" in response.headers["Set-Cookie"]
    after = user_client.get("/devices/my_devices")
    assert after.get_json()["status"] == _status(ErrorCode.UNAUTHORIZED)


def test_admin_routes_forbidden_for_users(user_client):
    response = user_client.get("/devices/")
    assert response.status_code == ErrorCode.FORBIDDEN.http_code
    assert response.get_json()["status"] == _status(ErrorCode.FORBIDDEN)


def test_admin_device_lifecycle(admin_client, session_factory):
    created = admin_client.post("/devices/", json={"device_id": "dev-0001", "secret": "secret"})
    assert created.status_code == ErrorCode.CREATED.http_code
    device = created.get_json()["data"]
    assert device["device_id"] == "dev-0001"
    assert "secret" not in device

    listed = admin_client.get("/devices/").get_json()["data"]
    assert listed == [{"uuid": device["uuid"], "device_id": "dev-0001", "status": 0}]

    retrieved = admin_client.get(f"/devices/{device['uuid']}").get_json()
    assert retrieved["data"]["uuid"] == device["uuid"]

    updated = admin_client.put(f"/devices/{device['uuid']}", json={"status": 2})
    assert updated.get_json()["data"]["status"] == 2

    deleted = admin_client.delete(f"/devices/{device['uuid']}")
    assert deleted.get_json()["data"] == {"message": DELETED_MESSAGE}
    with session_factory() as session:
        assert session.get(Device, device["uuid"]) is None


def test_create_device_missing_secret(admin_client):
    response = admin_client.post("/devices/", json={"device_id": "dev-0001"})
    assert response.get_json()["status"] == _status(ErrorCode.BAD_REQUEST)


def test_retrieve_unknown_device(admin_client):
    response = admin_client.get("/devices/no-such-device")
    assert response.status_code == ErrorCode.NOT_FOUND.http_code


def test_bind_and_unbind(admin_client, user_client, app):
    device = _create_device(admin_client)
    path = f"/devices/{device['uuid']}"

    bound = user_client.post(f"{path}/bind")
    assert bound.get_json()["status"] == _status(ErrorCode.OK)
    mine = user_client.get("/devices/my_devices").get_json()["data"]
    assert mine == [{"uuid": device["uuid"], "status": 0}]
    own = user_client.get(f"/devices/my_devices/{device['uuid']}").get_json()
    assert own["data"]["uuid"] == device["uuid"]

    other = app.test_client()
    _register(other, "carol")
    _login(other, "carol")
    assert other.post(f"{path}/bind").get_json()["status"] == _status(ErrorCode.BAD_REQUEST)
    assert other.post(f"{path}/unbind").get_json()["status"] == _status(ErrorCode.BAD_REQUEST)
    hidden = other.get(f"/devices/my_devices/{device['uuid']}")
    assert hidden.get_json()["status"] == _status(ErrorCode.NOT_FOUND)

    unbound = user_client.post(f"{path}/unbind")
    assert unbound.get_json()["status"] == _status(ErrorCode.OK)
    assert user_client.get("/devices/my_devices").get_json()["data"] == []


def test_main_missing_config(tmp_path):
    assert main(["--config", str(tmp_path / "absent.json")]) == 1


def test_main_invalid_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    assert main(["--config", str(path)]) == 1


def test_main_bad_database_name(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"mysql": {"db_name": "bad name"}}), encoding="utf-8")
    assert main(["--config", str(path)]) == 1