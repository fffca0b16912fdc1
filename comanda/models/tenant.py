"""Tenant model - each restaurant using the platform."""
from decimal import Decimal
from sqlalchemy import Column, BigInteger, String, Boolean, Numeric, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from comanda.database import Base, BigId


class Tenant(Base):
    """Restaurant account and its invoicing settings."""

    __tablename__ = 'tenant'

    id = Column(BigId, primary_key=True, autoincrement=True)
    slug = Column(String(80), nullable=False, unique=True)  # Used by staff devices to log in
    name = Column(String(200), nullable=False)
    restaurant_address = Column(String(255), nullable=True)
    tax_id = Column(String(50), nullable=True)
    # Percentages as decimals, e.g. 0.12
    tax_rate = Column(Numeric(5, 4), nullable=False, default=Decimal('0'), server_default='0')
    service_charge_rate = Column(Numeric(5, 4), nullable=False, default=Decimal('0'), server_default='0')
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    users = relationship('AppUser', back_populates='tenant')
    staff = relationship('Staff', back_populates='tenant')

    def __repr__(self):
        return f"<Tenant(id={self.id}, slug='{self.slug}', name='{self.name}')>"
