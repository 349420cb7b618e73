"""Read model of the product catalog.

Only the columns the scan lookup and barcode allocation need are mapped here.
``ProductBarcode`` carries the ``(organization_id, value)`` unique constraint
that backs generated barcode uniqueness.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db.session import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Text, nullable=False, index=True)
    sku = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    is_bundle = Column(Boolean, nullable=False, default=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    primary_image = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)

    barcodes = relationship(
        "ProductBarcode",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductBarcode.id",
    )
    packs = relationship(
        "ProductPack",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductPack.id",
    )


class ProductBarcode(Base):
    __tablename__ = "product_barcodes"
    __table_args__ = (UniqueConstraint("organization_id", "value", name="uq_product_barcodes_org_value"),)

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Text, nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    value = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)

    product = relationship("Product", back_populates="barcodes")


class ProductPack(Base):
    __tablename__ = "product_packs"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Text, nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    pack_barcode = Column(Text, nullable=True, index=True)

    product = relationship("Product", back_populates="packs")
