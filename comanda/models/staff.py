"""Staff and Role models - waiters, kitchen and managers who log in with a PIN."""
from sqlalchemy import Column, BigInteger, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from comanda.database import Base, BigId


class Role(Base):
    """Staff role defined by the restaurant owner (e.g. 'Mesero', 'Gerente')."""

    __tablename__ = 'role'
    __table_args__ = (
        UniqueConstraint('tenant_id', 'name', name='uq_role_tenant_name'),
    )

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(80), nullable=False)
    # Managers act with the owner's rights inside their restaurant
    is_manager = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    staff = relationship('Staff', back_populates='role')

    def __repr__(self):
        return f"<Role(id={self.id}, name='{self.name}', manager={self.is_manager})>"


class Staff(Base):
    """Staff member."""

    __tablename__ = 'staff'

    id = Column(BigId, primary_key=True, autoincrement=True)
    tenant_id = Column(BigInteger, ForeignKey('tenant.id'), nullable=False, index=True)
    role_id = Column(BigInteger, ForeignKey('role.id'), nullable=False)
    name = Column(String(200), nullable=False)
    pin_hash = Column(String(255), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    tenant = relationship('Tenant', back_populates='staff')
    role = relationship('Role', back_populates='staff')

    def set_pin(self, pin):
        self.pin_hash = generate_password_hash(str(pin), method='scrypt')

    def check_pin(self, pin):
        if not self.pin_hash:
            return False
        return check_password_hash(self.pin_hash, str(pin))

    @property
    def is_manager(self):
        return bool(self.role and self.role.is_manager)

    def __repr__(self):
        return f"<Staff(id={self.id}, name='{self.name}')>"
