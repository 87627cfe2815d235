"""
SQLAlchemy Database Models

Tables owned by the data-access layer:
    - users / user_roles : Credential Store
    - auth_tokens        : Token Registry (token signatures only)
    - menu               : Menu Store
    - franchises / stores: Franchise/Store Registry
    - diner_orders / order_items: Order Ledger
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func

from pizza_service.core.policy import Role
from pizza_service.database import Base


class User(Base):
    """A registered identity. ``password`` always holds a bcrypt hash."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<User #{self.id} - {self.email}>"


class UserRole(Base):
    """
    Role-binding row.
    
    ``object_id`` scopes the role to an owning entity; for franchisees it
    is the franchise id, for global roles it is NULL.
    """
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(
        Enum(Role, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    object_id = Column(Integer, nullable=True, index=True)

    def __repr__(self):
        return f"<UserRole user={self.user_id} {self.role.value} object={self.object_id}>"


class AuthToken(Base):
    """Signature of an issued session token mapped to its owner."""
    __tablename__ = "auth_tokens"

    token = Column(String(512), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)


class MenuItem(Base):
    __tablename__ = "menu"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(String(255), nullable=True)
    image = Column(String(1024), nullable=True)
    price = Column(Float, nullable=False)


class Franchise(Base):
    __tablename__ = "franchises"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)

    def __repr__(self):
        return f"<Franchise #{self.id} - {self.name}>"


class Store(Base):
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    franchise_id = Column(Integer, ForeignKey("franchises.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)


class DinerOrder(Base):
    """Append-only order header; line items live in ``order_items``."""
    __tablename__ = "diner_orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    diner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    franchise_id = Column(Integer, ForeignKey("franchises.id"), nullable=False)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False)
    date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("diner_orders.id"), nullable=False, index=True)
    menu_id = Column(Integer, ForeignKey("menu.id"), nullable=False)
    description = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)
