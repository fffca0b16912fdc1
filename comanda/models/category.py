"""Category model."""
from sqlalchemy import Column, BigInteger, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from comanda.database import Base, BigId


class Category(Base):
    """Menu category."""

    __tablename__ = 'category'

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    tenant = relationship('Tenant')

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"
