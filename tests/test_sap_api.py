"""Gateway endpoints: authentication, validation, credentials and upstream passthrough."""
import pytest
from sqlalchemy.exc import OperationalError

from erp_insights.core.security import get_session
from erp_insights.main import app
from erp_insights.services.auth_service import auth_service

SAP_ROOT = "http://sap.test/sap/opu/odata"

NAMED = "/api/sap/odata"
RAW = "/api/sap/connector"


@pytest.fixture
def auth(make_user):
    _, headers = make_user(custom_role="Sales Manager")
    return headers


class TestAuthentication:

    @pytest.mark.parametrize("path,body", [
        (NAMED, {"module": "SalesOrders"}),
        (RAW, {"service": "ZGW_SALES_SRV", "entitySet": "SalesOrdersSet"}),
    ])
    def test_no_session_is_401_before_any_sap_call(self, client, fake_sap, sap_credentials, path, body):
        r = client.post(path, json=body)
        assert r.status_code == 401
        assert r.json()["error"] == "Unauthorized"
        assert fake_sap.requests == []

    def test_invalid_token_is_401(self, client, fake_sap, sap_credentials):
        r = client.post(NAMED, json={"module": "SalesOrders"}, headers={"Authorization": "Bearer nope"})
        assert r.status_code == 401
        assert r.json()["error"] == "Unauthorized"

    def test_deactivated_user_is_401(self, client, make_user, fake_sap, sap_credentials):
        _, headers = make_user(is_active=False)
        r = client.post(NAMED, json={"module": "SalesOrders"}, headers=headers)
        assert r.status_code == 401
        assert fake_sap.requests == []

    def test_auth_checked_before_body_parsing(self, client, sap_credentials):
        r = client.post(NAMED, content=b"not json", headers={"Content-Type": "application/json"})
        assert r.status_code == 401

    def test_session_backend_error_is_401(self, client, auth, fake_sap, sap_credentials, monkeypatch):
        def broken(db, token):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        monkeypatch.setattr(auth_service, "resolve_session", broken)
        r = client.post(NAMED, json={"module": "SalesOrders"}, headers=auth)
        assert r.status_code == 401
        assert r.json() == {"success": False, "error": "Unauthorized"}
        assert fake_sap.requests == []

    def test_escaped_error_keeps_json_envelope(self, client, fake_sap, sap_credentials):
        def exploding_session():
            raise RuntimeError("session store unreachable")

        app.dependency_overrides[get_session] = exploding_session
        r = client.post(NAMED, json={"module": "SalesOrders"}, headers={"X-Request-Id": "req-42"})
        assert r.status_code == 500
        assert r.headers["content-type"].startswith("application/json")
        assert r.json() == {"success": False, "error": "Internal server error"}
        assert r.headers["X-Request-Id"] == "req-42"
        assert fake_sap.requests == []


class TestNamedModuleEndpoint:

    def test_missing_module(self, client, auth, sap_credentials):
        r = client.post(NAMED, json={}, headers=auth)
        assert r.status_code == 400
        assert r.json()["error"] == "Module parameter is required"

    def test_unknown_module_lists_all_modules(self, client, auth, sap_credentials, fake_sap):
        r = client.post(NAMED, json={"module": "NotARealModule"}, headers=auth)
        assert r.status_code == 400
        error = r.json()["error"]
        assert error.startswith("Unknown module: NotARealModule")
        for name in ["VendorInvoices", "SalesOrders", "Inventory", "FinancialEntries", "Suppliers"]:
            assert name in error
        assert fake_sap.requests == []

    def test_missing_credentials_is_500_without_network(self, client, auth, no_sap_credentials, fake_sap):
        r = client.post(NAMED, json={"module": "SalesOrders"}, headers=auth)
        assert r.status_code == 500
        assert r.json()["error"] == "SAP credentials not configured"
        assert fake_sap.requests == []

    def test_success_envelope_for_collection(self, client, auth, sap_credentials, fake_sap):
        fake_sap.respond(json_body={"d": {"results": [{"a": 1}, {"a": 2}]}})
        r = client.post(NAMED, json={"module": "SalesOrders", "top": 10, "skip": 5}, headers=auth)
        assert r.status_code == 200
        assert r.json() == {"success": True, "module": "SalesOrders", "count": 2, "data": [{"a": 1}, {"a": 2}]}

        url = str(fake_sap.requests[0].url)
        assert url.startswith(f"{SAP_ROOT}/sap/ZGW_SALES_SRV/SalesOrdersSet?")
        assert "$format=json&$top=10&$skip=5" in url

    def test_success_envelope_for_singleton(self, client, auth, sap_credentials, fake_sap):
        fake_sap.respond(json_body={"d": {"a": 1}})
        r = client.post(NAMED, json={"module": "Inventory"}, headers=auth)
        assert r.status_code == 200
        assert r.json()["data"] == {"a": 1}
        assert r.json()["count"] == 1

    def test_filter_is_forwarded_encoded(self, client, auth, sap_credentials, fake_sap):
        r = client.post(NAMED, json={"module": "SalesOrders", "filters": "Status eq 'Open'"}, headers=auth)
        assert r.status_code == 200
        assert fake_sap.requests[0].url.params["$filter"] == "Status eq 'Open'"

    def test_upstream_failure_passthrough(self, client, auth, sap_credentials, fake_sap):
        fake_sap.respond(status_code=503, text_body="Service Unavailable")
        r = client.post(NAMED, json={"module": "SalesOrders"}, headers=auth)
        assert r.status_code == 503
        body = r.json()
        assert body["success"] is False
        assert "SAP OData request failed" in body["error"]
        assert body["details"] == "Service Unavailable"
        assert len(fake_sap.requests) == 1

    def test_unparseable_upstream_json_is_500(self, client, auth, sap_credentials, fake_sap):
        fake_sap.respond(status_code=200, text_body="<html>login</html>")
        r = client.post(NAMED, json={"module": "SalesOrders"}, headers=auth)
        assert r.status_code == 500
        assert r.json()["error"]

    def test_negative_paging_rejected(self, client, auth, sap_credentials, fake_sap):
        r = client.post(NAMED, json={"module": "SalesOrders", "top": -1}, headers=auth)
        assert r.status_code == 400
        assert fake_sap.requests == []

    def test_malformed_body_is_400(self, client, auth, sap_credentials):
        r = client.post(NAMED, json={"module": "SalesOrders", "top": "ten"}, headers=auth)
        assert r.status_code == 400
        assert r.json()["error"] == "Invalid request body"

    def test_non_object_body_is_400(self, client, auth, sap_credentials):
        r = client.post(NAMED, json=["SalesOrders"], headers=auth)
        assert r.status_code == 400


class TestRawEndpoint:

    @pytest.mark.parametrize("body", [
        {},
        {"service": "ZGW_SALES_SRV"},
        {"entitySet": "SalesOrdersSet"},
    ])
    def test_missing_service_or_entity_set(self, client, auth, sap_credentials, fake_sap, body):
        r = client.post(RAW, json=body, headers=auth)
        assert r.status_code == 400
        assert r.json()["error"] == "Missing required parameters: service and entitySet"
        assert fake_sap.requests == []

    def test_missing_credentials(self, client, auth, no_sap_credentials, fake_sap):
        r = client.post(RAW, json={"service": "ZGW_SALES_SRV", "entitySet": "SalesOrdersSet"}, headers=auth)
        assert r.status_code == 500
        assert r.json()["error"] == "SAP credentials not configured"
        assert fake_sap.requests == []

    def test_success_uses_root_url(self, client, auth, sap_credentials, fake_sap):
        fake_sap.respond(json_body={"d": {"results": [{"x": 1}]}})
        r = client.post(
            RAW,
            json={"service": "sap/ZGW_CUSTOM_SRV", "entitySet": "ThingsSet", "top": 3, "filters": "X eq 1"},
            headers=auth,
        )
        assert r.status_code == 200
        assert r.json() == {"success": True, "count": 1, "data": [{"x": 1}]}
        url = str(fake_sap.requests[0].url)
        assert url.startswith(f"{SAP_ROOT}/sap/ZGW_CUSTOM_SRV/ThingsSet?$format=json&$top=3&$filter=")

    def test_upstream_failure_passthrough(self, client, auth, sap_credentials, fake_sap):
        fake_sap.respond(status_code=404, text_body="Resource not found for segment 'ThingsSet'")
        r = client.post(RAW, json={"service": "S", "entitySet": "ThingsSet"}, headers=auth)
        assert r.status_code == 404
        assert r.json()["details"] == "Resource not found for segment 'ThingsSet'"


class TestModulesListing:

    def test_lists_registry_for_users_with_reports(self, client, auth):
        r = client.get("/api/sap/modules", headers=auth)
        assert r.status_code == 200
        assert r.json()["modules"]["Suppliers"] == {"service": "ZGW_LOGISTICS_SRV", "entitySet": "SuppliersSet"}
        assert "SalesOrder" in r.json()["entities"]

    def test_requires_login(self, client):
        assert client.get("/api/sap/modules").status_code == 401
