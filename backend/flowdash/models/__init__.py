from flowdash.models.organization import Organization
from flowdash.models.user import User, RoleEnum
from flowdash.models.product import (
    Product,
    ProductAttribute,
    AttributeTypeEnum,
    DEFAULT_PACKAGING_TYPE,
    product_to_quality,
    product_to_packaging_type,
)
from flowdash.models.inventory import InventoryLog, InventorySummary
from flowdash.models.media import MediaFile

__all__ = [
    "Organization",
    "User",
    "RoleEnum",
    "Product",
    "ProductAttribute",
    "AttributeTypeEnum",
    "DEFAULT_PACKAGING_TYPE",
    "product_to_quality",
    "product_to_packaging_type",
    "InventoryLog",
    "InventorySummary",
    "MediaFile",
]
