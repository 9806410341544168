import enum


class FulfillmentStatus(str, enum.Enum):
    """Generic ordered-vs-fulfilled ladder every aggregate order maps onto."""

    pending = "PENDING"
    partial = "PARTIAL"
    fulfilled = "FULFILLED"


class WarehouseType(str, enum.Enum):
    domestic = "DOMESTIC"
    overseas = "OVERSEAS"


class ContractStatus(str, enum.Enum):
    pending_shipment = "PENDING_SHIPMENT"
    partial_shipment = "PARTIAL_SHIPMENT"
    shipped = "SHIPPED"
    settled = "SETTLED"
    cancelled = "CANCELLED"


class DeliveryOrderStatus(str, enum.Enum):
    pending = "PENDING"
    partial = "PARTIAL"
    received = "RECEIVED"
    cancelled = "CANCELLED"


class InboundStatus(str, enum.Enum):
    pending = "待入库"
    partial = "部分入库"
    received = "已入库"


class OutboundStatus(str, enum.Enum):
    pending = "待出库"
    partial = "部分出库"
    shipped = "已出库"


class ShippingMethod(str, enum.Enum):
    sea = "SEA"
    air = "AIR"
    express = "EXPRESS"


class MovementType(str, enum.Enum):
    receipt = "RECEIPT"
    receipt_reversal = "RECEIPT_REVERSAL"
    issue = "ISSUE"
    issue_reversal = "ISSUE_REVERSAL"
    adjustment = "ADJUSTMENT"
    transfer_in = "TRANSFER_IN"


CONTRACT_STATUS_LABELS = {
    ContractStatus.pending_shipment: "待发货",
    ContractStatus.partial_shipment: "部分发货",
    ContractStatus.shipped: "发货完成",
    ContractStatus.settled: "已结清",
    ContractStatus.cancelled: "已取消",
}
