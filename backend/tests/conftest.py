import os
import pytest


@pytest.fixture(scope="session", autouse=True)
def _set_env(tmp_path_factory):
    base = tmp_path_factory.mktemp("sitekit")
    os.environ["JWT_SECRET_KEY"] = "test-secret-key-with-enough-length-32b"
    os.environ["SECRET_KEY"] = "test"
    os.environ["DATABASE_URL"] = f"sqlite:///{base / 'sitekit_test.db'}"
    os.environ["CONFIG_DIR"] = str(base / "data")
    os.environ.pop("LOG_DIR", None)
    yield


@pytest.fixture(scope="session")
def app(_set_env):
    from app import create_app  # type: ignore
    a = create_app()
    a.testing = True
    return a


@pytest.fixture(autouse=True)
def _clean_db(app):
    # 每個測試都從空的資料表開始
    from utils.db import Base, get_engine  # type: ignore
    eng = get_engine()
    Base.metadata.drop_all(bind=eng)
    Base.metadata.create_all(bind=eng)
    yield


@pytest.fixture(autouse=True)
def _clean_config(_set_env):
    from utils.config_handler import config_path  # type: ignore
    p = config_path()
    if p.exists():
        p.unlink()
    yield


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def session(app):
    from utils.db import get_session  # type: ignore
    with get_session() as s:
        yield s


def _token(app, uid: str, role: str) -> str:
    from flask_jwt_extended import create_access_token
    with app.app_context():
        return create_access_token(identity=uid, additional_claims={"role": role})


@pytest.fixture()
def admin_token(app):
    return _token(app, "1", "shop_admin")


@pytest.fixture()
def user_token(app):
    return _token(app, "2", "user")
