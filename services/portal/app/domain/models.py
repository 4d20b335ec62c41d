from enum import Enum
from typing import Optional

DEFAULT_REORDER_LEVEL = 5
DEFAULT_CATEGORY = "Uncategorized"
DEFAULT_LOCATION = "Main Warehouse"

REJECTION_NOTIFICATION_TYPE = "purchase_request_rejected"
APPROVAL_NOTIFICATION_TYPE = "purchase_request_approved"
REQUEST_NOTIFICATION_TYPES = (APPROVAL_NOTIFICATION_TYPE, REJECTION_NOTIFICATION_TYPE)

class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    CLIENT = "client"
    DEALER = "dealer"

    @classmethod
    def _missing_(cls, value):
        # Some tokens carry the role without the underscore
        if isinstance(value, str) and value.lower() == "superadmin":
            return cls.SUPER_ADMIN
        return None

class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"

class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"

class EntityStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"

class DealerSlotStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"

class OrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class ErrorKind(str, Enum):
    TRANSPORT = "transport"
    AUTH = "auth"
    VALIDATION = "validation"
    SERVER = "server"

def effective_reorder_level(reorder_level: Optional[int]) -> int:
    """Zero or missing reorder levels fall back to the platform default."""
    return reorder_level or DEFAULT_REORDER_LEVEL

def derive_stock_status(stock: Optional[float], reorder_level: Optional[int]) -> StockStatus:
    stock = stock or 0
    if stock <= 0:
        return StockStatus.OUT_OF_STOCK
    if stock <= effective_reorder_level(reorder_level):
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK
