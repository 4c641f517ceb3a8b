"""
Pytest fixtures for FlowDash backend tests.

Provides an in-memory database, throwaway RSA session keys, tenant fixtures
(two organizations with users of every role) and a test client whose
database and key dependencies are overridden.
"""
import os
import tempfile

# Settings are read at import time; point everything at throwaway locations first
_TMP_DIR = tempfile.mkdtemp(prefix="flowdash-tests-")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("FLOWDASH_LOG_DIR", os.path.join(_TMP_DIR, "logs"))
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TMP_DIR, "uploads"))
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from flowdash.core import rate_limit
from flowdash.core.config import settings
from flowdash.core.database import Base, enable_sqlite_foreign_keys, get_db
from flowdash.core.keys import SessionKeys, get_session_keys
from flowdash.core.security import create_session_token, get_password_hash
from flowdash.main import app
from flowdash.models import Organization, RoleEnum, User

DEFAULT_PASSWORD = "password123"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_foreign_keys(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def generate_keys() -> SessionKeys:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")
    return SessionKeys(private_key=private_pem, public_key=public_pem)


@pytest.fixture(scope="session")
def keys():
    """Session key pair the app trusts."""
    return generate_keys()


@pytest.fixture(scope="session")
def foreign_keys():
    """A second, untrusted key pair."""
    return generate_keys()


@pytest.fixture(scope="function")
def db_session():
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_rate_limit():
    rate_limit.clear()
    yield
    rate_limit.clear()


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    return tmp_path / "uploads"


@pytest.fixture(scope="function")
def client(db_session, keys):
    """Test client sharing the test's database session."""

    def override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_keys] = lambda: keys
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, organization, username, role=RoleEnum.FLOOR_STAFF, name=None, is_active=True):
    user = User(
        organization_id=organization.id,
        username=username,
        name=name or username.title(),
        password_hash=get_password_hash(DEFAULT_PASSWORD),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def claims_for(user) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "role": user.role.value,
        "organization_id": user.organization_id,
    }


def auth_headers(user, session_keys, **kwargs) -> dict:
    token = create_session_token(claims_for(user), session_keys, **kwargs)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def org(db_session):
    """Organization A (first tenant)."""
    organization = Organization(name="Acme Textiles")
    db_session.add(organization)
    db_session.commit()
    return organization


@pytest.fixture(scope="function")
def org_b(db_session):
    """Organization B (second tenant)."""
    organization = Organization(name="Beta Mills")
    db_session.add(organization)
    db_session.commit()
    return organization


@pytest.fixture
def owner(db_session, org):
    return make_user(db_session, org, "owner", RoleEnum.SUPER_ADMIN, name="Olivia Owner")


@pytest.fixture
def admin(db_session, org):
    return make_user(db_session, org, "manager", RoleEnum.ADMIN, name="Martin Manager")


@pytest.fixture
def staff(db_session, org):
    return make_user(db_session, org, "floor1", RoleEnum.FLOOR_STAFF, name="Fiona Floor")


@pytest.fixture
def admin_b(db_session, org_b):
    return make_user(db_session, org_b, "beta-admin", RoleEnum.ADMIN, name="Bob Beta")


@pytest.fixture
def owner_headers(owner, keys):
    return auth_headers(owner, keys)


@pytest.fixture
def admin_headers(admin, keys):
    return auth_headers(admin, keys)


@pytest.fixture
def staff_headers(staff, keys):
    return auth_headers(staff, keys)


@pytest.fixture
def admin_b_headers(admin_b, keys):
    return auth_headers(admin_b, keys)
