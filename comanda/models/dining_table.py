"""Dining table model."""
from sqlalchemy import Column, BigInteger, String, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from comanda.database import Base, BigId
import enum


class TableStatus(enum.Enum):
    """Table availability."""
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    BILLING = "BILLING"  # Staff asked for the check


class DiningTable(Base):
    """Physical table in the restaurant floor."""

    __tablename__ = 'dining_table'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'name', name='uq_dining_table_tenant_name'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(80), nullable=False)
    status = Column(Enum(TableStatus, name='table_status'), nullable=False, default=TableStatus.AVAILABLE)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    tenant = relationship('Tenant')
    orders = relationship('Order', back_populates='table')

    def __repr__(self):
        return f"<DiningTable(id={self.id}, name='{self.name}', status={self.status.value})>"
