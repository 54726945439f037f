"""SQLAlchemy models."""

from aquaflow.models.user import User
from aquaflow.models.branch import Branch, BranchStatus
from aquaflow.models.inventory import BranchInventoryItem, InventoryItem, StockStatus
from aquaflow.models.driver import Driver, DriverStatus, VehicleType
from aquaflow.models.order import (
    BranchOrder,
    BranchOrderLine,
    Order,
    OrderLine,
    OrderPriority,
    OrderSource,
    OrderStatus,
)
from aquaflow.models.recycling import (
    BinStatus,
    CollectionRequest,
    CollectionRequestType,
    RecyclingBin,
    RecyclingRequest,
    RequestStatus,
)
from aquaflow.models.emergency import (
    BonusStatus,
    DriverBonus,
    DriverBonusStatus,
    EmergencyPriority,
    EmergencyRequest,
    EmergencyStatus,
    EmergencyType,
)
from aquaflow.models.factory_request import FactoryRequest, FactoryRequestLine, FactoryRequestStatus
from aquaflow.models.purchase import CustomerPurchase, CustomerPurchaseLine
from aquaflow.models.factory_waste import FactoryBinStatus, FactoryWasteBin, FactoryWasteEntry, WasteType
from aquaflow.models.operations import AuditLogEntry, SideEffectKey

__all__ = [
    "User",
    "Branch",
    "BranchStatus",
    "InventoryItem",
    "BranchInventoryItem",
    "StockStatus",
    "Driver",
    "DriverStatus",
    "VehicleType",
    "Order",
    "OrderLine",
    "BranchOrder",
    "BranchOrderLine",
    "OrderStatus",
    "OrderPriority",
    "OrderSource",
    "RecyclingBin",
    "RecyclingRequest",
    "CollectionRequest",
    "CollectionRequestType",
    "BinStatus",
    "RequestStatus",
    "EmergencyRequest",
    "EmergencyStatus",
    "EmergencyType",
    "EmergencyPriority",
    "BonusStatus",
    "DriverBonus",
    "DriverBonusStatus",
    "FactoryRequest",
    "FactoryRequestLine",
    "FactoryRequestStatus",
    "CustomerPurchase",
    "CustomerPurchaseLine",
    "FactoryWasteBin",
    "FactoryWasteEntry",
    "FactoryBinStatus",
    "WasteType",
    "AuditLogEntry",
    "SideEffectKey",
]
