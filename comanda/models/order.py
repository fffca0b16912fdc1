"""Order model."""
from decimal import Decimal
from sqlalchemy import Column, BigInteger, Numeric, DateTime, Enum, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from comanda.database import Base, BigId
import enum


class OrderStatus(enum.Enum):
    """Order lifecycle status."""
    OPEN = "OPEN"
    COOKING = "COOKING"
    READY = "READY"
    DELIVERED = "DELIVERED"
    CLOSED = "CLOSED"
    CANCELED = "CANCELED"


ACTIVE_ORDER_STATUSES = (
    OrderStatus.OPEN,
    OrderStatus.COOKING,
    OrderStatus.READY,
    OrderStatus.DELIVERED,
)
TERMINAL_ORDER_STATUSES = (OrderStatus.CLOSED, OrderStatus.CANCELED)

_ACTIVE_SQL = text("status IN ('OPEN', 'COOKING', 'READY', 'DELIVERED')")


class Order(Base):
    """Table order (comanda)."""

    __tablename__ = 'customer_order'
    __table_args__ = (
        # Storage-level guard: one active order per table
        Index(
            'uq_customer_order_active_table',
            'table_id',
            unique=True,
            postgresql_where=_ACTIVE_SQL,
            sqlite_where=_ACTIVE_SQL,
        ),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    table_id = Column(BigInteger, ForeignKey('dining_table.id'), nullable=False)
    staff_id = Column(BigInteger, ForeignKey('staff.id'), nullable=True)
    status = Column(Enum(OrderStatus, name='order_status'), nullable=False, default=OrderStatus.OPEN)
    # Cached sum of item totals, recomputed on every item mutation
    total = Column(Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    tenant = relationship('Tenant')
    table = relationship('DiningTable', back_populates='orders')
    staff = relationship('Staff')
    items = relationship(
        'OrderItem',
        back_populates='order',
        cascade='all, delete-orphan',
        order_by='OrderItem.id'
    )
    invoices = relationship('Invoice', back_populates='order')

    @property
    def is_active(self):
        return self.status in ACTIVE_ORDER_STATUSES

    def __repr__(self):
        return f"<Order(id={self.id}, table_id={self.table_id}, status={self.status.value}, total={self.total})>"
