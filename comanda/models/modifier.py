"""Modifier group and option models (e.g. "Choose your sauce" -> "BBQ +1.50")."""
from sqlalchemy import Column, BigInteger, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from comanda.database import Base, BigId


class ModifierGroup(Base):
    """Named customization category attached to one product."""

    __tablename__ = 'modifier_group'

    id = Column(BigId, primary_key=True, autoincrement=True)
    product_id = Column(BigInteger, ForeignKey('product.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    position = Column(Integer, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    product = relationship('Product', back_populates='modifier_groups')
    options = relationship(
        'ModifierOption',
        back_populates='group',
        cascade='all, delete-orphan',
        order_by='[ModifierOption.position, ModifierOption.created_at, ModifierOption.id]'
    )

    def __repr__(self):
        return f"<ModifierGroup(id={self.id}, name='{self.name}')>"


class ModifierOption(Base):
    """Priced choice inside a modifier group."""

    __tablename__ = 'modifier_option'

    id = Column(BigId, primary_key=True, autoincrement=True)
    group_id = Column(BigInteger, ForeignKey('modifier_group.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    position = Column(Integer, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    group = relationship('ModifierGroup', back_populates='options')

    def __repr__(self):
        return f"<ModifierOption(id={self.id}, name='{self.name}', price={self.price})>"
