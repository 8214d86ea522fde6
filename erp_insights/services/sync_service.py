"""Sync service — copy SAP entity sets into the local ``synced_records`` table."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from erp_insights.connectors.odata import ODataQuery, ServiceBinding, build_url
from erp_insights.core.exceptions import ValidationError
from erp_insights.models.synced_record import SyncedRecord
from erp_insights.services.gateway_service import GatewayService

logger = logging.getLogger("erp_insights.sync")


@dataclass(frozen=True)
class SyncBinding:
    """Where an entity lives in SAP and how its fields are renamed locally.

    ``field_mapping`` maps local snake_case names to SAP field names.
    """

    binding: ServiceBinding
    field_mapping: Mapping[str, str]


def _sync(service: str, entity_set: str, **field_mapping: str) -> SyncBinding:
    return SyncBinding(ServiceBinding(service, entity_set), field_mapping)


SYNC_BINDINGS: Dict[str, SyncBinding] = {
    "SalesOrder": _sync(
        "ZGW_SALES_SRV", "SalesOrdersSet",
        order_number="OrderNumber", customer_name="CustomerName", customer_code="CustomerCode",
        order_date="OrderDate", delivery_date="DeliveryDate", net_value="NetValue",
        currency="Currency", status="Status", sales_org="SalesOrg",
        material_group="MaterialGroup", salesperson_name="SalespersonName",
        salesperson_code="SalespersonCode", region="Region", city="City",
    ),
    "SalesInvoice": _sync(
        "ZGW_SALES_SRV", "SalesInvoicesSet",
        invoice_number="InvoiceNumber", order_number="OrderNumber", customer_name="CustomerName",
        customer_code="CustomerCode", invoice_date="InvoiceDate", due_date="DueDate",
        gross_amount="GrossAmount", tax_amount="TaxAmount", net_amount="NetAmount",
        currency="Currency", status="Status", salesperson_name="SalespersonName",
        region="Region", payment_terms="PaymentTerms",
    ),
    "PurchaseOrder": _sync(
        "ZGW_PURCHASE_SRV", "PurchaseOrdersSet",
        po_number="PONumber", vendor_name="VendorName", vendor_code="VendorCode",
        po_date="PODate", delivery_date="DeliveryDate", net_value="NetValue",
        currency="Currency", status="Status", purchasing_org="PurchasingOrg",
        material_group="MaterialGroup",
    ),
    "VendorInvoice": _sync(
        "ZGW_PURCHASE_SRV", "VendorInvoicesSet",
        invoice_number="InvoiceNumber", vendor_name="VendorName", vendor_code="VendorCode",
        invoice_date="InvoiceDate", due_date="DueDate", gross_amount="GrossAmount",
        tax_amount="TaxAmount", net_amount="NetAmount", currency="Currency",
        status="Status", po_reference="POReference",
    ),
    "Inventory": _sync(
        "ZGW_INVENTORY_SRV", "InventorySet",
        material_number="MaterialNumber", material_description="MaterialDescription",
        plant="Plant", storage_location="StorageLocation", quantity_on_hand="QuantityOnHand",
        unit_of_measure="UnitOfMeasure", value="Value", currency="Currency",
        material_group="MaterialGroup", reorder_point="ReorderPoint", safety_stock="SafetyStock",
    ),
    "FinancialEntry": _sync(
        "ZGW_FINANCE_SRV", "FinancialEntriesSet",
        document_number="DocumentNumber", company_code="CompanyCode", fiscal_year="FiscalYear",
        posting_date="PostingDate", document_type="DocumentType", gl_account="GLAccount",
        gl_account_name="GLAccountName", debit_amount="DebitAmount",
        credit_amount="CreditAmount", currency="Currency", cost_center="CostCenter",
        profit_center="ProfitCenter",
    ),
    "ProductionOrder": _sync(
        "ZGW_PRODUCTION_SRV", "ProductionOrdersSet",
        order_number="OrderNumber", material_number="MaterialNumber",
        material_description="MaterialDescription", plant="Plant", order_type="OrderType",
        planned_quantity="PlannedQuantity", confirmed_quantity="ConfirmedQuantity",
        unit_of_measure="UnitOfMeasure", start_date="StartDate", end_date="EndDate",
        status="Status", work_center="WorkCenter",
    ),
    "Shipment": _sync(
        "ZGW_LOGISTICS_SRV", "ShipmentsSet",
        shipment_number="ShipmentNumber", type="Type", origin="Origin",
        destination="Destination", carrier="Carrier", ship_date="ShipDate",
        expected_delivery="ExpectedDelivery", actual_delivery="ActualDelivery",
        status="Status", reference_type="ReferenceType", reference_number="ReferenceNumber",
        weight="Weight", volume="Volume", freight_cost="FreightCost", currency="Currency",
    ),
    "Supplier": _sync(
        "ZGW_LOGISTICS_SRV", "SuppliersSet",
        supplier_code="SupplierCode", name="Name", category="Category", country="Country",
        city="City", contact_person="ContactPerson", email="Email", phone="Phone",
        lead_time_days="LeadTimeDays", rating="Rating", status="Status",
        payment_terms="PaymentTerms", total_spend="TotalSpend",
    ),
}


def transform_records(records: List[Dict[str, Any]], field_mapping: Mapping[str, str]) -> List[Dict[str, Any]]:
    """Rename SAP fields to local names; fields without a mapping are dropped."""
    reverse = {sap_field: local for local, sap_field in field_mapping.items()}
    return [
        {reverse[key]: value for key, value in record.items() if key in reverse}
        for record in records
    ]


class SyncService:
    """Pulls a whole entity set through the gateway and stores it locally."""

    def __init__(self, gateway: GatewayService, bindings: Optional[Mapping[str, SyncBinding]] = None):
        self.gateway = gateway
        self.bindings = dict(bindings if bindings is not None else SYNC_BINDINGS)

    def resolve(self, entity: Optional[str]) -> SyncBinding:
        available = ", ".join(self.bindings)
        if not entity:
            raise ValidationError("Entity parameter is required", details=f"Available entities: {available}")
        sync_binding = self.bindings.get(entity)
        if sync_binding is None:
            raise ValidationError(f"Unknown entity: {entity}. Available entities: {available}")
        return sync_binding

    async def sync(
        self,
        db: Session,
        entity: Optional[str],
        clear_existing: bool = False,
        actor_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        sync_binding = self.resolve(entity)
        credentials = self.gateway.credentials_loader()

        url = build_url(self.gateway.named_base_url, sync_binding.binding, ODataQuery())
        result = await self.gateway.fetcher.fetch(url, credentials)
        if isinstance(result.data, list):
            records = result.data
        else:
            records = [result.data] if result.data else []
        if not records:
            return {"success": True, "message": "No data returned from SAP", "synced": 0}

        transformed = transform_records(records, sync_binding.field_mapping)

        if clear_existing:
            deleted = db.query(SyncedRecord).filter(SyncedRecord.entity == entity).delete()
            logger.info("Cleared %s existing %s records", deleted, entity)

        db.add_all([
            SyncedRecord(entity=entity, payload_json=json.dumps(row, default=str), synced_by=actor_id)
            for row in transformed
        ])
        db.commit()

        logger.info("Synced %s %s records from SAP", len(transformed), entity)
        return {
            "success": True,
            "entity": entity,
            "synced": len(transformed),
            "message": f"Successfully synced {len(transformed)} {entity} records from SAP",
        }

    @staticmethod
    def list_records(db: Session, entity: str, page: int = 1, page_size: int = 50) -> Dict[str, Any]:
        query = db.query(SyncedRecord).filter(SyncedRecord.entity == entity)
        total = query.count()
        rows = (
            query.order_by(SyncedRecord.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {
            "entity": entity,
            "total": total,
            "page": page,
            "data": [json.loads(r.payload_json) for r in rows],
        }
