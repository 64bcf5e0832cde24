# products_service/app/db/models.py
from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey, DateTime
from sqlalchemy.orm import relationship

from common.clock import utcnow
from products_service.app.db.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), index=True, nullable=False)
    description = Column(String(500), nullable=True)
    price = Column(Numeric(18, 2, asdecimal=False), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), index=True, nullable=False)
    sku = Column(String(50), unique=True, nullable=True)
    stock = Column(Integer, nullable=False, default=0)
    image_url = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)  # soft-delete flag
    created_at = Column(DateTime, nullable=False, default=utcnow)
    created_by = Column(String(50), nullable=False)
    updated_at = Column(DateTime, nullable=True)
    updated_by = Column(String(50), nullable=True)

    category = relationship("Category", back_populates="products")

    @property
    def category_name(self):
        return self.category.name if self.category is not None else None


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, index=True, nullable=False)
    description = Column(String(300), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    products = relationship("Product", back_populates="category")
