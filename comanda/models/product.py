"""Product model."""
from sqlalchemy import Column, BigInteger, String, Text, Boolean, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from comanda.database import Base, BigId


class Product(Base):
    """Menu product."""

    __tablename__ = 'product'

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    category_id = Column(BigInteger, ForeignKey('category.id'), nullable=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    tenant = relationship('Tenant')
    category = relationship('Category', foreign_keys=[category_id])
    modifier_groups = relationship(
        'ModifierGroup',
        back_populates='product',
        cascade='all, delete-orphan',
        order_by='[ModifierGroup.position, ModifierGroup.created_at, ModifierGroup.id]'
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', price={self.price})>"
