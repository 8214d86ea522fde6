"""SAP API router — OData gateway endpoints and local sync."""

from typing import Type, TypeVar

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from erp_insights.connectors.odata import ODataQuery
from erp_insights.core.exceptions import ValidationError
from erp_insights.core.permissions import PermissionsProvider, SessionResult
from erp_insights.core.roles import NavModuleId
from erp_insights.core.security import RequireModule, get_session
from erp_insights.db.session import get_db
from erp_insights.schemas.schemas import ODataModuleRequest, ODataRawRequest, SyncRequest
from erp_insights.services.audit_service import audit_service
from erp_insights.services.gateway_service import GatewayService, error_envelope, get_gateway_service
from erp_insights.services.sync_service import SyncService

router = APIRouter(prefix="/sap", tags=["sap"])

BodyT = TypeVar("BodyT", bound=BaseModel)


def _unauthorized() -> JSONResponse:
    return JSONResponse(status_code=401, content={"success": False, "error": "Unauthorized"})


def _error(exc: Exception) -> JSONResponse:
    status_code, content = error_envelope(exc)
    return JSONResponse(status_code=status_code, content=content)


async def _read_body(request: Request, model: Type[BodyT]) -> BodyT:
    """Parse the JSON body after authentication, so bad bodies answer 400, not 422."""
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError("Invalid request body", details=str(e))


def get_sync_service(gateway: GatewayService = Depends(get_gateway_service)) -> SyncService:
    return SyncService(gateway)


@router.post("/odata")
async def fetch_sap_odata(
    request: Request,
    session: SessionResult = Depends(get_session),
    gateway: GatewayService = Depends(get_gateway_service),
):
    """Fetch a registered SAP module by friendly name."""
    if not session.ok:
        return _unauthorized()
    try:
        body = await _read_body(request, ODataModuleRequest)
        query = ODataQuery(filter=body.filters, top=body.top, skip=body.skip)
        return await gateway.fetch_module(body.module, query)
    except Exception as exc:
        return _error(exc)


@router.post("/connector")
async def sap_odata_connector(
    request: Request,
    session: SessionResult = Depends(get_session),
    gateway: GatewayService = Depends(get_gateway_service),
):
    """Fetch any SAP service/entity-set pair."""
    if not session.ok:
        return _unauthorized()
    try:
        body = await _read_body(request, ODataRawRequest)
        query = ODataQuery(filter=body.filters, top=body.top, skip=body.skip)
        return await gateway.fetch_entity_set(body.service, body.entity_set, query)
    except Exception as exc:
        return _error(exc)


@router.post("/sync")
async def sync_sap_data(
    request: Request,
    session: SessionResult = Depends(get_session),
    sync_service: SyncService = Depends(get_sync_service),
    db: Session = Depends(get_db),
):
    """Copy a SAP entity set into the local store."""
    if not session.ok:
        return _unauthorized()
    try:
        body = await _read_body(request, SyncRequest)
        result = await sync_service.sync(
            db, body.entity, clear_existing=body.clear_existing, actor_id=session.user.id,
        )
    except Exception as exc:
        return _error(exc)

    if result.get("synced"):
        audit_service.sap_synced(
            db, session.user, body.entity, result["synced"],
            cleared_existing=body.clear_existing, request=request,
        )
    return result


@router.get("/modules")
async def list_sap_modules(
    gateway: GatewayService = Depends(get_gateway_service),
    sync_service: SyncService = Depends(get_sync_service),
    provider: PermissionsProvider = Depends(RequireModule(NavModuleId.REPORTS)),
):
    """List the registered SAP modules and syncable entities."""
    return {
        "modules": gateway.registry.to_dict(),
        "entities": list(sync_service.bindings),
    }


@router.get("/records/{entity}")
async def list_synced_records(
    entity: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    provider: PermissionsProvider = Depends(RequireModule(NavModuleId.REPORTS)),
):
    """Page through locally synced records of one entity."""
    return SyncService.list_records(db, entity, page, page_size)
