# catalogo/models.py
import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, Numeric,
    PrimaryKeyConstraint, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class OrderStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PAID = "PAID"
    CANCELED = "CANCELED"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(120), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    email_verified = Column(DateTime, nullable=True)
    image = Column(String(500), nullable=True)
    password_hash = Column(String(255), nullable=True)   # vazio para login via provedor externo

    # ===== Dados da empresa =====
    company_name = Column(String(255), nullable=True)
    cnpj = Column(String(18), unique=True, nullable=True)
    phone = Column(String(20), nullable=True)

    role = Column(Enum(UserRole, name="user_role"), default=UserRole.USER, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    accounts = relationship("Account", back_populates="user", cascade="all, delete-orphan")
    sessions = relationship("Session", back_populates="user", cascade="all, delete-orphan")
    authenticators = relationship("Authenticator", back_populates="user", cascade="all, delete-orphan")
    orders = relationship("Order", back_populates="user")


# -----------------------------------------------------------------------------
# Tabelas do provedor de autenticação (apenas declaradas)
# -----------------------------------------------------------------------------
class Account(Base):
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)
    provider = Column(String(100), nullable=False)
    provider_account_id = Column(String(255), nullable=False)
    refresh_token = Column(Text, nullable=True)
    access_token = Column(Text, nullable=True)
    expires_at = Column(Integer, nullable=True)
    token_type = Column(String(50), nullable=True)
    scope = Column(String(255), nullable=True)
    id_token = Column(Text, nullable=True)
    session_state = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="accounts")

    __table_args__ = (
        UniqueConstraint("provider", "provider_account_id", name="uq_accounts_provider"),
    )


class Session(Base):
    __tablename__ = "sessions"

    session_token = Column(String(255), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="sessions")


class VerificationToken(Base):
    __tablename__ = "verification_tokens"

    identifier = Column(String(255), nullable=False)
    token = Column(String(255), nullable=False)
    expires = Column(DateTime, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("identifier", "token"),
    )


class Authenticator(Base):
    __tablename__ = "authenticators"

    credential_id = Column(String(255), unique=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    provider_account_id = Column(String(255), nullable=False)
    credential_public_key = Column(Text, nullable=False)
    counter = Column(Integer, nullable=False)
    credential_device_type = Column(String(50), nullable=False)
    credential_backed_up = Column(Boolean, nullable=False)
    transports = Column(String(255), nullable=True)

    user = relationship("User", back_populates="authenticators")

    __table_args__ = (
        PrimaryKeyConstraint("user_id", "credential_id"),
    )


# -----------------------------------------------------------------------------
# Catálogo
# -----------------------------------------------------------------------------
class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(120), nullable=False)
    slug = Column(String(140), unique=True, nullable=False)

    products = relationship("Product", back_populates="category")


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    type = Column(String(30), nullable=True)           # unidade, caixa, pacote, quilo, litro
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=False)
    barcode = Column(String(64), unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    category = relationship("Category", back_populates="products")

    __table_args__ = (
        Index("idx_products_category", "category_id"),
    )


# -----------------------------------------------------------------------------
# Pedidos
# -----------------------------------------------------------------------------
class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    status = Column(Enum(OrderStatus, name="order_status"), default=OrderStatus.DRAFT, nullable=False)
    total = Column(Numeric(10, 2), default=Decimal("0.00"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    # um pedido por (usuário, status): no máximo um rascunho aberto
    __table_args__ = (
        UniqueConstraint("user_id", "status", name="uq_orders_user_status"),
    )

    def recompute_total(self) -> Decimal:
        total = sum((Decimal(str(i.price)) * i.quantity for i in self.items), Decimal("0.00"))
        self.total = total.quantize(Decimal("0.01"))
        return self.total


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)     # preço no momento da compra

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    @classmethod
    def from_product(cls, product: Product, quantity: int) -> "OrderItem":
        if quantity < 1:
            raise ValueError("Quantidade inválida.")
        return cls(product=product, product_id=product.id, quantity=quantity, price=Decimal(str(product.price)))
