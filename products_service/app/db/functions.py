# products_service/app/db/functions.py
import logging
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from common.clock import utcnow
from common.errors import Conflict, NotFound, ValidationError
from common.pagination import PaginationSpec
from products_service.app.db.models import Category, Product
from products_service.app.db.schemas import (
    Category as CategorySchema,
    CategoryCreate,
    CategoryUpdate,
    ProductCreate,
    ProductSearch,
    ProductUpdate,
)

logger = logging.getLogger(__name__)

PRODUCT_LIST_LIMIT = 1000


def _active_products():
    return select(Product).filter(Product.is_active.is_(True)).options(selectinload(Product.category))


# Products

async def get_all_products(db: AsyncSession, limit: int = PRODUCT_LIST_LIMIT) -> List[Product]:
    result = await db.execute(_active_products().order_by(Product.name).limit(limit))
    return result.scalars().all()


async def search_products(db: AsyncSession, filters: ProductSearch, pagination: PaginationSpec) -> List[Product]:
    query = _active_products()
    if filters.search:
        pattern = f"%{filters.search}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
    if filters.category_id is not None:
        query = query.filter(Product.category_id == filters.category_id)
    if filters.min_price is not None:
        query = query.filter(Product.price >= filters.min_price)
    if filters.max_price is not None:
        query = query.filter(Product.price <= filters.max_price)
    if filters.in_stock:
        query = query.filter(Product.stock > 0)

    result = await db.execute(
        query.order_by(Product.name, Product.id).offset(pagination.offset).limit(pagination.page_size)
    )
    return result.scalars().all()


async def get_product_by_id(db: AsyncSession, product_id: int, active_only: bool = True) -> Product:
    query = select(Product).options(selectinload(Product.category)).filter(Product.id == product_id)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    # populate_existing reloads the category after category_id changes in this session
    result = await db.execute(query.execution_options(populate_existing=True))
    product = result.scalar_one_or_none()
    if not product:
        raise NotFound("Product not found")
    return product


async def _require_active_category(db: AsyncSession, category_id: int) -> Category:
    try:
        return await _get_active_category(db, category_id)
    except NotFound as exc:
        raise ValidationError(f"Category {category_id} does not exist", field="category_id") from exc


async def _ensure_sku_free(db: AsyncSession, sku: str, product_id: Optional[int] = None) -> None:
    query = select(Product.id).filter(Product.sku == sku)
    if product_id is not None:
        query = query.filter(Product.id != product_id)
    result = await db.execute(query.limit(1))
    if result.scalar_one_or_none() is not None:
        raise Conflict(f"SKU {sku} is already in use")


async def create_product(db: AsyncSession, data: ProductCreate, created_by: str) -> Product:
    await _require_active_category(db, data.category_id)
    if data.sku:
        await _ensure_sku_free(db, data.sku)

    new_product = Product(
        **data.model_dump(),
        is_active=True,
        created_at=utcnow(),
        created_by=created_by,
    )
    db.add(new_product)
    await db.commit()
    await db.refresh(new_product)
    logger.info("Product %s created by %s", new_product.id, created_by)
    return await get_product_by_id(db, new_product.id)


async def update_product(db: AsyncSession, product_id: int, data: ProductUpdate, updated_by: str) -> Product:
    product = await get_product_by_id(db, product_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    if "category_id" in changes and changes["category_id"] != product.category_id:
        await _require_active_category(db, changes["category_id"])
    if changes.get("sku") and changes["sku"] != product.sku:
        await _ensure_sku_free(db, changes["sku"], product_id)

    for field, value in changes.items():
        setattr(product, field, value)
    product.updated_at = utcnow()
    product.updated_by = updated_by

    await db.commit()
    return await get_product_by_id(db, product_id, active_only=False)


async def update_stock(db: AsyncSession, product_id: int, quantity: int, updated_by: str) -> Product:
    product = await get_product_by_id(db, product_id)
    product.stock = quantity
    product.updated_at = utcnow()
    product.updated_by = updated_by
    await db.commit()
    return await get_product_by_id(db, product_id)


async def delete_product(db: AsyncSession, product_id: int) -> None:
    """Soft delete: the row stays, flagged inactive."""
    product = await get_product_by_id(db, product_id)
    product.is_active = False
    product.updated_at = utcnow()
    await db.commit()
    logger.info("Product %s deactivated", product_id)


# Categories

async def _active_product_counts(db: AsyncSession, category_ids: List[int]) -> Dict[int, int]:
    if not category_ids:
        return {}
    result = await db.execute(
        select(Product.category_id, func.count(Product.id))
        .filter(Product.category_id.in_(category_ids), Product.is_active.is_(True))
        .group_by(Product.category_id)
    )
    return {category_id: count for category_id, count in result.all()}


def _to_schema(category: Category, product_count: int) -> CategorySchema:
    return CategorySchema.model_validate(category).model_copy(update={"product_count": product_count})


async def get_all_categories(db: AsyncSession) -> List[CategorySchema]:
    result = await db.execute(
        select(Category).filter(Category.is_active.is_(True)).order_by(Category.name)
    )
    categories = result.scalars().all()
    counts = await _active_product_counts(db, [category.id for category in categories])
    return [_to_schema(category, counts.get(category.id, 0)) for category in categories]


async def _get_active_category(db: AsyncSession, category_id: int) -> Category:
    result = await db.execute(
        select(Category).filter(Category.id == category_id, Category.is_active.is_(True))
    )
    category = result.scalar_one_or_none()
    if not category:
        raise NotFound("Category not found")
    return category


async def get_category_by_id(db: AsyncSession, category_id: int) -> CategorySchema:
    category = await _get_active_category(db, category_id)
    counts = await _active_product_counts(db, [category.id])
    return _to_schema(category, counts.get(category.id, 0))


async def _ensure_category_name_free(db: AsyncSession, name: str, category_id: Optional[int] = None) -> None:
    query = select(Category.id).filter(Category.name == name)
    if category_id is not None:
        query = query.filter(Category.id != category_id)
    result = await db.execute(query.limit(1))
    if result.scalar_one_or_none() is not None:
        raise Conflict(f"Category {name} already exists")


async def create_category(db: AsyncSession, data: CategoryCreate) -> CategorySchema:
    await _ensure_category_name_free(db, data.name)
    category = Category(name=data.name, description=data.description, is_active=True, created_at=utcnow())
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return _to_schema(category, 0)


async def update_category(db: AsyncSession, category_id: int, data: CategoryUpdate) -> CategorySchema:
    category = await _get_active_category(db, category_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if changes.get("name") and changes["name"] != category.name:
        await _ensure_category_name_free(db, changes["name"], category_id)
    counts = await _active_product_counts(db, [category.id])
    if changes.get("is_active") is False and counts.get(category.id, 0) > 0:
        raise Conflict("Cannot deactivate category that contains active products")

    for field, value in changes.items():
        setattr(category, field, value)
    await db.commit()
    await db.refresh(category)
    return _to_schema(category, counts.get(category.id, 0))


async def delete_category(db: AsyncSession, category_id: int) -> None:
    category = await _get_active_category(db, category_id)
    counts = await _active_product_counts(db, [category.id])
    if counts.get(category.id, 0) > 0:
        raise Conflict("Cannot delete category that contains active products")

    category.is_active = False
    await db.commit()
    logger.info("Category %s deactivated", category_id)
