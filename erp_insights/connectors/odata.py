"""SAP OData v2 connector: module registry, URL builder and authenticated fetcher."""

import base64
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, NewType, Optional, Union
from urllib.parse import quote

import httpx

from erp_insights.core.config import SapCredentialSettings
from erp_insights.core.exceptions import ConfigurationError, UpstreamError, ValidationError

logger = logging.getLogger("erp_insights.odata")

SapModuleName = NewType("SapModuleName", str)


@dataclass(frozen=True)
class ServiceBinding:
    """A SAP service namespace plus one of its entity sets."""

    service: str
    entity_set: str

    def to_dict(self) -> Dict[str, str]:
        return {"service": self.service, "entitySet": self.entity_set}


DEFAULT_SERVICE_BINDINGS: Dict[SapModuleName, ServiceBinding] = {
    # Purchase
    SapModuleName("VendorInvoices"): ServiceBinding("ZGW_PURCHASE_SRV", "VendorInvoicesSet"),
    SapModuleName("PurchaseOrders"): ServiceBinding("ZGW_PURCHASE_SRV", "PurchaseOrdersSet"),
    # Sales
    SapModuleName("SalesOrders"): ServiceBinding("ZGW_SALES_SRV", "SalesOrdersSet"),
    SapModuleName("SalesInvoices"): ServiceBinding("ZGW_SALES_SRV", "SalesInvoicesSet"),
    SapModuleName("SalesOrderItems"): ServiceBinding("ZGW_SALES_SRV", "SalesOrderItemsSet"),
    # Inventory
    SapModuleName("Inventory"): ServiceBinding("ZGW_INVENTORY_SRV", "InventorySet"),
    # Finance
    SapModuleName("FinancialEntries"): ServiceBinding("ZGW_FINANCE_SRV", "FinancialEntriesSet"),
    # Production
    SapModuleName("ProductionOrders"): ServiceBinding("ZGW_PRODUCTION_SRV", "ProductionOrdersSet"),
    # Supply chain / logistics
    SapModuleName("Shipments"): ServiceBinding("ZGW_LOGISTICS_SRV", "ShipmentsSet"),
    SapModuleName("Suppliers"): ServiceBinding("ZGW_LOGISTICS_SRV", "SuppliersSet"),
}


class ServiceRegistry:
    """Friendly SAP module name -> ServiceBinding."""

    def __init__(self, bindings: Mapping[str, ServiceBinding]):
        self._bindings: Dict[str, ServiceBinding] = dict(bindings)

    @property
    def module_names(self) -> List[str]:
        return list(self._bindings)

    def resolve(self, module: str) -> ServiceBinding:
        """Return the binding for ``module``.

        Raises:
            ValidationError: If the module is not registered; lists the valid names.
        """
        binding = self._bindings.get(module)
        if binding is None:
            raise ValidationError(
                f"Unknown module: {module}. Available modules: {', '.join(self.module_names)}"
            )
        return binding

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {name: b.to_dict() for name, b in self._bindings.items()}

    @classmethod
    def default(cls) -> "ServiceRegistry":
        return cls(DEFAULT_SERVICE_BINDINGS)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ServiceRegistry":
        """Load ``{"Name": {"service": ..., "entitySet": ...}}`` from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls({
            SapModuleName(name): ServiceBinding(entry["service"], entry["entitySet"])
            for name, entry in data.items()
        })


def build_service_registry(registry_file: Optional[str]) -> ServiceRegistry:
    if registry_file:
        return ServiceRegistry.from_file(registry_file)
    return ServiceRegistry.default()


@dataclass(frozen=True)
class ODataQuery:
    """Query options forwarded to SAP. ``filter`` is passed through unparsed."""

    filter: Optional[str] = None
    top: Optional[int] = None
    skip: Optional[int] = None


def build_url(base: str, binding: ServiceBinding, query: Optional[ODataQuery] = None) -> str:
    """Build ``{base}/{service}/{entitySet}?$format=json[&$top][&$skip][&$filter]``.

    ``top`` and ``skip`` are only added when truthy, so ``0`` is omitted.
    """
    query = query or ODataQuery()
    url = f"{base.rstrip('/')}/{binding.service}/{binding.entity_set}?$format=json"
    if query.top:
        url += f"&$top={query.top}"
    if query.skip:
        url += f"&$skip={query.skip}"
    if query.filter:
        url += f"&$filter={quote(query.filter, safe='')}"
    return url


@dataclass(frozen=True)
class SapCredentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"SapCredentials(username={self.username!r}, password='**********')"

    @property
    def authorization_header(self) -> str:
        token = base64.b64encode(f"{self.username}:{self.password}".encode("utf-8")).decode("ascii")
        return f"Basic {token}"


def load_sap_credentials() -> SapCredentials:
    """Read SAP credentials from the environment at call time.

    Raises:
        ConfigurationError: If either the username or the password is missing.
    """
    env = SapCredentialSettings()
    password = env.SAP_ODATA_PASSWORD.get_secret_value() if env.SAP_ODATA_PASSWORD else ""
    if not env.SAP_ODATA_USERNAME or not password:
        raise ConfigurationError("SAP credentials not configured")
    return SapCredentials(username=env.SAP_ODATA_USERNAME, password=password)


@dataclass(frozen=True)
class ODataResult:
    data: Any
    count: int


def unwrap_odata(body: Any) -> ODataResult:
    """Unwrap ``{"d": {"results": [...]}}`` or ``{"d": {...}}``; anything else is returned as-is."""
    results = body
    if isinstance(body, dict) and body.get("d") is not None:
        envelope = body["d"]
        if isinstance(envelope, dict) and envelope.get("results") is not None:
            results = envelope["results"]
        else:
            results = envelope
    count = len(results) if isinstance(results, list) else 1
    return ODataResult(data=results, count=count)


class ODataFetcher:
    """Issues one authenticated GET per call against a SAP OData service.

    No retries and no caching. ``transport`` lets tests plug in an
    ``httpx.MockTransport``.
    """

    def __init__(self, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    async def fetch(self, url: str, credentials: SapCredentials) -> ODataResult:
        """GET ``url`` and return the unwrapped OData payload.

        Raises:
            UpstreamError: On a non-2xx answer; the body is kept as ``details``.
        """
        headers = {
            "Authorization": credentials.authorization_header,
            "Accept": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.get(url, headers=headers)

        if not resp.is_success:
            logger.warning("SAP OData request failed: %s %s", resp.status_code, url.split("?")[0])
            raise UpstreamError(
                f"SAP OData request failed: {resp.status_code} {resp.reason_phrase}".strip(),
                status_code=resp.status_code,
                details=resp.text,
            )

        return unwrap_odata(resp.json())
