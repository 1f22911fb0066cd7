"""
Reference data models backing the product form dropdowns.
"""
from typing import Optional
from sqlalchemy import String, Integer, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp.core.database import Base, lifecycle_constraint


class ProductType(Base):
    """Top-level product family (Smartphone, Laptop, Tablet, ...)."""

    __tablename__ = "product_types"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    brands = relationship("Brand", back_populates="product_type")
    models = relationship("Model", back_populates="product_type")

    __table_args__ = (lifecycle_constraint(),)

    def __repr__(self) -> str:
        return f"<ProductType(id={self.id}, name={self.name})>"


class Brand(Base):
    __tablename__ = "brands"

    product_type_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("product_types.id", ondelete="RESTRICT"),
        nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    product_type = relationship("ProductType", back_populates="brands")
    models = relationship("Model", back_populates="brand")

    __table_args__ = (
        lifecycle_constraint(),
        Index("idx_brands_product_type", "product_type_id"),
    )

    def __repr__(self) -> str:
        return f"<Brand(id={self.id}, name={self.name})>"


class Model(Base):
    """A concrete device model of a brand (e.g. iPhone 13 Pro)."""

    __tablename__ = "models"

    product_type_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("product_types.id", ondelete="RESTRICT"),
        nullable=False
    )
    brand_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("brands.id", ondelete="RESTRICT"),
        nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    model_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    release_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    product_type = relationship("ProductType", back_populates="models")
    brand = relationship("Brand", back_populates="models")

    __table_args__ = (
        lifecycle_constraint(),
        Index("idx_models_brand", "brand_id"),
        Index("idx_models_product_type", "product_type_id"),
    )

    def __repr__(self) -> str:
        return f"<Model(id={self.id}, name={self.name}, brand_id={self.brand_id})>"


class Color(Base):
    __tablename__ = "colors"

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    hex_code: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (lifecycle_constraint(),)

    def __repr__(self) -> str:
        return f"<Color(id={self.id}, name={self.name})>"


class Condition(Base):
    """Resale condition, e.g. "Excellent" / grade A / 95%."""

    __tablename__ = "conditions"

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    quality_percentage: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    grade: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        lifecycle_constraint(),
        CheckConstraint(
            "quality_percentage >= 0 AND quality_percentage <= 100",
            name="quality_percentage_range"
        ),
    )

    def __repr__(self) -> str:
        return f"<Condition(id={self.id}, name={self.name})>"
