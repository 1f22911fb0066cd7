"""
Product model for imported electronics stock.
"""
import enum
from typing import Optional
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    String, Integer, Text, DateTime, Enum, Index, CheckConstraint, JSON, Numeric, event
)
from sqlalchemy.orm import Mapped, mapped_column

from erp.core.database import Base, lifecycle_constraint, utc_now, as_utc
from erp.core.config import settings
from erp.pricing import compute_pricing, stock_value

MONEY = Numeric(12, 2)
# Large enough for a 0.01 cost against the highest MONEY price
PERCENT = Numeric(18, 2)


class ProductStatus(str, enum.Enum):
    """Sales status of a product."""
    AVAILABLE = "Available"
    RESERVED = "Reserved"
    SOLD = "Sold"
    DAMAGED = "Damaged"

    def can_transition_to(self, target: "ProductStatus") -> bool:
        """Staying in the same status is always allowed (no-op)."""
        return target == self or target in STATUS_TRANSITIONS[self]


STATUS_TRANSITIONS: dict[ProductStatus, frozenset[ProductStatus]] = {
    ProductStatus.AVAILABLE: frozenset({ProductStatus.RESERVED, ProductStatus.SOLD, ProductStatus.DAMAGED}),
    ProductStatus.RESERVED: frozenset({ProductStatus.AVAILABLE, ProductStatus.SOLD, ProductStatus.DAMAGED}),
    # returns and restocks
    ProductStatus.SOLD: frozenset({ProductStatus.AVAILABLE, ProductStatus.DAMAGED}),
    # repaired
    ProductStatus.DAMAGED: frozenset({ProductStatus.AVAILABLE}),
}


class Product(Base):
    """Imported product with landed cost, resale price and stock."""

    __tablename__ = "products"

    # Identification
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    brand: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    condition: Mapped[str] = mapped_column(String(50), nullable=False)
    condition_grade: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    # Technical attributes (free text)
    storage: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    memory: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    processor: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    screen_size: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Pricing inputs
    purchase_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    transport_cost: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)
    other_costs: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)
    selling_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    # Derived pricing, written only by recompute_pricing()
    total_cost_price: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)
    margin: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)
    margin_percentage: Mapped[Decimal] = mapped_column(PERCENT, default=Decimal("0.00"), nullable=False)

    # Stock
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_stock_level: Mapped[int] = mapped_column(
        Integer, default=lambda: settings.default_min_stock_level, nullable=False
    )

    # Provenance
    supplier_name: Mapped[str] = mapped_column(String(200), nullable=False)
    supplier_city: Mapped[str] = mapped_column(String(100), nullable=False)
    purchase_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    arrival_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    import_batch: Mapped[str] = mapped_column(String(100), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[ProductStatus] = mapped_column(
        Enum(
            ProductStatus,
            native_enum=False,
            length=20,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        default=ProductStatus.AVAILABLE,
        nullable=False
    )

    # Additional information
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    warranty_info: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    images_urls: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    documents_urls: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # Optimistic concurrency token, bumped by the ORM on every flush
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        lifecycle_constraint(),
        CheckConstraint("stock >= 0", name="stock_non_negative"),
        CheckConstraint("min_stock_level >= 0", name="min_stock_level_non_negative"),
        Index("idx_products_category", "category"),
        Index("idx_products_brand", "brand"),
        Index("idx_products_supplier", "supplier_name"),
        Index("idx_products_batch", "import_batch"),
        Index("idx_products_status", "status"),
        Index("idx_products_low_stock", "stock", "min_stock_level"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name}, stock={self.stock}, status={self.status})>"

    def recompute_pricing(self) -> None:
        """Refresh total cost, margin and margin percentage from the inputs."""
        breakdown = compute_pricing(
            self.purchase_price,
            self.transport_cost,
            self.other_costs,
            self.selling_price,
        )
        self.total_cost_price = breakdown.total_cost_price
        self.margin = breakdown.margin
        self.margin_percentage = breakdown.margin_percentage

    @property
    def total_value(self) -> Decimal:
        """Stock valued at the selling price."""
        return stock_value(self.stock or 0, self.selling_price)

    @property
    def is_low_stock(self) -> bool:
        """Check if product stock is at or below its minimum level."""
        return self.stock <= self.min_stock_level

    @property
    def days_in_stock(self) -> int:
        """Whole days since arrival (or since the record was created)."""
        since = as_utc(self.arrival_date or self.created_at)
        if since is None:
            return 0
        return max(0, (utc_now() - since).days)


@event.listens_for(Product, "before_insert")
@event.listens_for(Product, "before_update")
def _recompute_derived_pricing(mapper, connection, target: Product) -> None:
    target.recompute_pricing()
