"""
Shared fixtures: in-memory SQLite, a simulated SAP OData upstream, and a
FastAPI TestClient wired to both through dependency overrides.
"""
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import erp_insights.models  # noqa: F401
from erp_insights.connectors.odata import ODataFetcher, ServiceRegistry
from erp_insights.core.security import create_access_token
from erp_insights.db.base import Base
from erp_insights.db.session import get_db
from erp_insights.main import app
from erp_insights.services.auth_service import auth_service
from erp_insights.services.gateway_service import GatewayService, get_gateway_service

SAP_ROOT = "http://sap.test/sap/opu/odata"
SAP_USER = "svc_dashboard"
SAP_PASSWORD = "s3cret"


class FakeSap:
    """Stand-in for the SAP gateway; records every request it receives."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.json_body = {"d": {"results": []}}
        self.text_body = None

    def respond(self, status_code=200, json_body=None, text_body=None):
        self.status_code = status_code
        self.json_body = json_body
        self.text_body = text_body

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text_body is not None:
            return httpx.Response(self.status_code, text=self.text_body)
        return httpx.Response(self.status_code, json=self.json_body)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def make_user(db_session):
    """Factory creating a user and returning ``(user, auth headers)``."""
    counter = {"n": 0}

    def _make(role="user", custom_role=None, email=None, is_active=True):
        counter["n"] += 1
        user = auth_service.create_user(
            db_session,
            email or f"user{counter['n']}@erp.test",
            "password123",
            f"Test User {counter['n']}",
            role=role,
            custom_role=custom_role,
        )
        if not is_active:
            user.is_active = False
            db_session.commit()
        token = create_access_token({"sub": str(user.id), "email": user.email})
        return user, {"Authorization": f"Bearer {token}"}

    return _make


# ---------------------------------------------------------------------------
# SAP upstream
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_sap():
    return FakeSap()


@pytest.fixture
def sap_credentials(monkeypatch):
    monkeypatch.setenv("SAP_ODATA_USERNAME", SAP_USER)
    monkeypatch.setenv("SAP_ODATA_PASSWORD", SAP_PASSWORD)


@pytest.fixture
def no_sap_credentials(monkeypatch):
    monkeypatch.delenv("SAP_ODATA_USERNAME", raising=False)
    monkeypatch.delenv("SAP_ODATA_PASSWORD", raising=False)


@pytest.fixture
def gateway(fake_sap):
    return GatewayService(
        registry=ServiceRegistry.default(),
        fetcher=ODataFetcher(timeout=5.0, transport=httpx.MockTransport(fake_sap)),
        named_base_url=f"{SAP_ROOT}/sap",
        raw_base_url=SAP_ROOT,
    )


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest.fixture
def client(db_session, gateway):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway_service] = lambda: gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
