"""SAP OData gateway — named-module and raw service/entity-set fetches."""

import logging
from functools import lru_cache
from typing import Any, Callable, Dict, Optional, Tuple

from erp_insights.connectors.odata import (
    ODataFetcher,
    ODataQuery,
    SapCredentials,
    ServiceBinding,
    ServiceRegistry,
    build_service_registry,
    build_url,
    load_sap_credentials,
)
from erp_insights.core.config import settings
from erp_insights.core.exceptions import ERPInsightsError, ValidationError

logger = logging.getLogger("erp_insights.gateway")


def validate_paging(top: Optional[int], skip: Optional[int]) -> None:
    for name, value in (("top", top), ("skip", skip)):
        if value is not None and value < 0:
            raise ValidationError(f"Parameter {name} must be a non-negative integer")


class GatewayService:
    """Validates gateway input, builds the OData URL and fetches it.

    Every call makes at most one upstream request and raises
    ``ERPInsightsError`` subclasses for the caller to turn into an envelope.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        fetcher: ODataFetcher,
        named_base_url: str,
        raw_base_url: str,
        credentials_loader: Callable[[], SapCredentials] = load_sap_credentials,
    ):
        self.registry = registry
        self.fetcher = fetcher
        self.named_base_url = named_base_url
        self.raw_base_url = raw_base_url
        self.credentials_loader = credentials_loader

    async def fetch_module(self, module: Optional[str], query: ODataQuery) -> Dict[str, Any]:
        """Fetch a registered SAP module by its friendly name."""
        if not module:
            raise ValidationError("Module parameter is required")
        validate_paging(query.top, query.skip)
        credentials = self.credentials_loader()

        binding = self.registry.resolve(module)
        url = build_url(self.named_base_url, binding, query)
        logger.info("Fetching SAP module %s from %s/%s", module, binding.service, binding.entity_set)
        result = await self.fetcher.fetch(url, credentials)
        return {
            "success": True,
            "module": module,
            "count": result.count,
            "data": result.data,
        }

    async def fetch_entity_set(
        self, service: Optional[str], entity_set: Optional[str], query: ODataQuery,
    ) -> Dict[str, Any]:
        """Fetch any service/entity-set pair supplied by the caller."""
        if not service or not entity_set:
            raise ValidationError("Missing required parameters: service and entitySet")
        validate_paging(query.top, query.skip)
        credentials = self.credentials_loader()

        url = build_url(self.raw_base_url, ServiceBinding(service, entity_set), query)
        logger.info("Fetching SAP entity set %s/%s", service, entity_set)
        result = await self.fetcher.fetch(url, credentials)
        return {
            "success": True,
            "count": result.count,
            "data": result.data,
        }


def error_envelope(exc: Exception) -> Tuple[int, Dict[str, Any]]:
    """Map any exception to ``(status, {success, error, details?})``."""
    if isinstance(exc, ERPInsightsError):
        body: Dict[str, Any] = {"success": False, "error": exc.message}
        if exc.details is not None:
            body["details"] = exc.details
        return exc.status_code, body
    logger.exception("Unexpected gateway error")
    return 500, {"success": False, "error": str(exc)}


@lru_cache
def get_gateway_service() -> GatewayService:
    """FastAPI dependency returning the process-wide gateway service."""
    return GatewayService(
        registry=build_service_registry(settings.SERVICE_REGISTRY_FILE),
        fetcher=ODataFetcher(timeout=settings.SAP_ODATA_TIMEOUT_SECONDS),
        named_base_url=settings.sap_service_root,
        raw_base_url=settings.SAP_ODATA_ROOT_URL,
    )
