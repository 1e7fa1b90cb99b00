import os
import tempfile
import uuid

# Must be set before the application modules read their settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="rackmap-uploads-"))
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.pop("LLM_API_KEY", None)
os.environ.pop("FLOORPLAN_WEBHOOK_URL", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from rackmap import auth, database, models
from rackmap.config import settings

TEST_PASSWORD = "secret123"


@pytest.fixture(scope="session")
def engine():
    return database.engine


@pytest.fixture()
def db_session(engine):
    database.Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        database.Base.metadata.drop_all(engine)


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex}@example.com"


@pytest.fixture()
def make_tenant(db_session):
    def _make(name="Acme", plan=None):
        tenant = models.Tenant(name=name, plan=plan)
        db_session.add(tenant)
        db_session.commit()
        db_session.refresh(tenant)
        return tenant
    return _make


@pytest.fixture()
def make_user(db_session):
    def _make(tenant, email=None, password=TEST_PASSWORD):
        user = models.User(
            email=email or _unique_email(),
            hashed_password=auth.get_password_hash(password),
            tenant_id=tenant.id,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make


@pytest.fixture()
def tenant(make_tenant):
    return make_tenant()


@pytest.fixture()
def other_tenant(make_tenant):
    return make_tenant("Globex")


@pytest.fixture()
def user(make_user, tenant):
    return make_user(tenant)


@pytest.fixture()
def location(db_session, tenant):
    location = models.Location(tenant_id=tenant.id, name="DC1")
    db_session.add(location)
    db_session.commit()
    db_session.refresh(location)
    return location


@pytest.fixture()
def gridded_location(db_session, location):
    location.grid_columns = 20
    location.grid_rows = 10
    db_session.commit()
    db_session.refresh(location)
    return location


@pytest.fixture()
def rack(db_session, tenant, location):
    rack = models.Rack(tenant_id=tenant.id, location_id=location.id, name="R01", total_u=42)
    db_session.add(rack)
    db_session.commit()
    db_session.refresh(rack)
    return rack


@pytest.fixture()
def make_asset(db_session, tenant, rack):
    def _make(name, start_u=None, size_u=1, asset_type=None, target_rack=rack, ports=()):
        asset = models.Asset(
            tenant_id=tenant.id,
            rack_id=target_rack.id if target_rack is not None else None,
            location_id=(target_rack or rack).location_id,
            name=name,
            asset_type=asset_type,
            status="IN_PRODUCTION",
            start_u=start_u,
            size_u=size_u,
        )
        db_session.add(asset)
        db_session.flush()
        for port_name in ports:
            db_session.add(models.Port(tenant_id=tenant.id, asset_id=asset.id, name=port_name, port_type="RJ45"))
        db_session.commit()
        db_session.refresh(asset)
        return asset
    return _make


@pytest.fixture()
def patch_panel(make_asset):
    return make_asset("PP-01", start_u=1, asset_type="PATCH_PANEL", ports=("P1-F", "P1-R", "P2-F", "P2-R"))


@pytest.fixture()
def switch(make_asset):
    return make_asset("SW-01", start_u=2, asset_type="SWITCH", ports=("Gi1", "Gi2", "Gi3"))


@pytest.fixture()
def client(db_session):
    from rackmap.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[database.get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def auth_client(client, user):
    token = auth.create_access_token({"sub": user.email, "tenant_id": user.tenant_id})
    client.cookies.set(auth.COOKIE_NAME, f"Bearer {token}")
    return client


@pytest.fixture()
def override_settings(monkeypatch):
    """Swap the frozen settings object seen by the given modules."""
    def _override(*modules, **values):
        patched = settings.model_copy(update=values)
        for module in modules:
            monkeypatch.setattr(module, "settings", patched)
        return patched
    return _override
