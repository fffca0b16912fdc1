"""Invoice and invoice sequence models."""
from sqlalchemy import Column, BigInteger, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from comanda.database import Base, BigId, JsonDocument


class Invoice(Base):
    """
    Issued invoice (factura).

    Immutable once created. `invoice_data` is a denormalized snapshot of the
    restaurant, the sale, the line items and the financial summary, so it stays
    renderable whatever happens later to the source rows.
    """

    __tablename__ = 'invoice'

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    order_id = Column(BigInteger, ForeignKey('customer_order.id'), nullable=False, index=True)
    staff_id = Column(BigInteger, ForeignKey('staff.id'), nullable=True, index=True)
    invoice_number = Column(String(20), nullable=False, unique=True)
    invoice_data = Column(JsonDocument, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)

    # Relationships
    order = relationship('Order', back_populates='invoices')

    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.invoice_number}')>"


class InvoiceSequence(Base):
    """Counter row per year; advanced with an atomic UPDATE inside the invoicing transaction."""

    __tablename__ = 'invoice_sequence'

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(BigInteger, nullable=False, default=0)

    def __repr__(self):
        return f"<InvoiceSequence(year={self.year}, last_value={self.last_value})>"
