from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from flowdash.core.database import Base


class InventoryLog(Base):
    """One production entry: `produced` units of a product in a quality/packaging combination."""
    __tablename__ = "inventory_logs"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    produced = Column(Integer, nullable=False)
    quality = Column(String(255), nullable=False)
    packaging_type = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    product = relationship("Product", back_populates="logs")
    user = relationship("User", back_populates="inventory_logs")


class InventorySummary(Base):
    """Running stock per product/quality/packaging combination, maintained alongside the logs."""
    __tablename__ = "inventory_summary"
    __table_args__ = (
        UniqueConstraint("product_id", "quality", "packaging_type", name="uq_inventory_summary_combination"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    quality = Column(String(255), nullable=False)
    packaging_type = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    last_updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    product = relationship("Product", back_populates="stock")
