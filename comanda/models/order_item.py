"""Order item model."""
from sqlalchemy import Column, BigInteger, Integer, Numeric, String, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from comanda.database import Base, BigId, JsonDocument


class OrderItem(Base):
    """
    One line of an order.

    `price` and `selected_modifiers` are snapshots taken when the item is added:
    later catalog edits never change them. `selected_modifiers` is a list of
    {"id", "name", "price"} dicts with the price stored as a string.
    """

    __tablename__ = 'order_item'

    id = Column(BigId, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('customer_order.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey('product.id'), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    selected_modifiers = Column(JsonDocument, nullable=False, default=list)
    notes = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    order = relationship('Order', back_populates='items')
    product = relationship('Product')

    def __repr__(self):
        return f"<OrderItem(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"
