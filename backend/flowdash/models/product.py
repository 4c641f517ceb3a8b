from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, Table, UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from flowdash.core.database import Base


class AttributeTypeEnum(str, enum.Enum):
    CATEGORY = "category"
    DESIGN = "design"
    COLOR = "color"
    QUALITY = "quality"
    PACKAGING_TYPE = "packaging_type"


# Packaging type every product can be logged as
DEFAULT_PACKAGING_TYPE = "Open"


product_to_quality = Table(
    "product_to_quality",
    Base.metadata,
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("attribute_id", Integer, ForeignKey("product_attributes.id", ondelete="CASCADE"), primary_key=True),
)

product_to_packaging_type = Table(
    "product_to_packaging_type",
    Base.metadata,
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("attribute_id", Integer, ForeignKey("product_attributes.id", ondelete="CASCADE"), primary_key=True),
)


class ProductAttribute(Base):
    __tablename__ = "product_attributes"
    __table_args__ = (
        UniqueConstraint("organization_id", "type", "value", name="uq_product_attributes_org_type_value"),
    )

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    type = Column(SQLEnum(AttributeTypeEnum, values_callable=lambda x: [e.value for e in x], native_enum=False), nullable=False)
    value = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    organization = relationship("Organization", back_populates="attributes")


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("organization_id", "sku", name="uq_products_org_sku"),
    )

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=False)
    color = Column(String(100), nullable=True)
    category = Column(String(100), nullable=True)
    design = Column(String(100), nullable=True)
    image_url = Column(String(1024), nullable=True)
    media_id = Column(Integer, ForeignKey("media_library.id", ondelete="SET NULL"), nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    organization = relationship("Organization", back_populates="products")
    media = relationship("MediaFile", back_populates="products")
    qualities = relationship("ProductAttribute", secondary=product_to_quality, order_by="ProductAttribute.value")
    packaging_types = relationship("ProductAttribute", secondary=product_to_packaging_type, order_by="ProductAttribute.value")
    stock = relationship("InventorySummary", back_populates="product", cascade="all, delete-orphan")
    logs = relationship("InventoryLog", back_populates="product")
