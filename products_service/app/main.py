# products_service/app/main.py
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from common.auth_utils import TokenClaims
from common.errors import register_error_handlers
from common.events import LogLevel, ServiceName, publish_log_event
from common.logging import configure_logging
from common.pagination import normalize_pagination
from common.security import get_current_claims, require_admin
from common.settings import get_settings
from products_service.app.db.database import get_db, get_products_engine
from products_service.app.db.functions import (
    create_category,
    create_product,
    delete_category,
    delete_product,
    get_all_categories,
    get_all_products,
    get_category_by_id,
    get_product_by_id,
    search_products,
    update_category,
    update_product,
    update_stock,
)
from products_service.app.db.init_db import init_db
from products_service.app.db.schemas import (
    Category as CategorySchema,
    CategoryCreate,
    CategoryUpdate,
    Product as ProductSchema,
    ProductCreate,
    ProductSearch,
    ProductUpdate,
    StockUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    yield
    await get_products_engine().dispose()


app = FastAPI(title="Products Service", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)


@app.get("/")
async def health_check():
    return {"status": "products_service running"}


# Products

@app.get("/api/products", response_model=List[ProductSchema])
async def read_products(db: AsyncSession = Depends(get_db)):
    return await get_all_products(db)


@app.get("/api/products/search", response_model=List[ProductSchema])
async def find_products(
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    in_stock: Optional[bool] = None,
    page: int = Query(default=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
):
    pagination = normalize_pagination(page=page, page_size=page_size, max_page_size=MAX_PAGE_SIZE)
    filters = ProductSearch(
        search=search,
        category_id=category_id,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
    )
    logger.debug("search_products: %s page=%s", filters, pagination)
    return await search_products(db, filters, pagination)


@app.get("/api/products/{product_id}", response_model=ProductSchema)
async def read_product(
    product_id: int,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    return await get_product_by_id(db, product_id)


@app.post("/api/products", response_model=ProductSchema, status_code=201)
async def create_new_product(
    product: ProductCreate,
    background_tasks: BackgroundTasks,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    new_product = await create_product(db, product, created_by=claims.username)
    background_tasks.add_task(
        publish_log_event,
        ServiceName.products,
        LogLevel.info,
        f"Product {new_product.id} ({new_product.name}) created",
        claims.username,
    )
    return new_product


@app.api_route("/api/products/{product_id}", methods=["PUT", "PATCH"], response_model=ProductSchema)
async def update_existing_product(
    product_id: int,
    product: ProductUpdate,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    return await update_product(db, product_id, product, updated_by=claims.username)


@app.patch("/api/products/{product_id}/stock", response_model=ProductSchema)
async def update_product_stock(
    product_id: int,
    stock: StockUpdate,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    return await update_stock(db, product_id, stock.quantity, updated_by=claims.username)


@app.delete("/api/products/{product_id}")
async def delete_existing_product(
    product_id: int,
    background_tasks: BackgroundTasks,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await delete_product(db, product_id)
    background_tasks.add_task(
        publish_log_event, ServiceName.products, LogLevel.warning, f"Product {product_id} deleted", claims.username
    )
    return {"message": "Product deleted"}


# Categories

@app.get("/api/categories", response_model=List[CategorySchema])
async def read_categories(db: AsyncSession = Depends(get_db)):
    return await get_all_categories(db)


@app.get("/api/categories/{category_id}", response_model=CategorySchema)
async def read_category(category_id: int, db: AsyncSession = Depends(get_db)):
    return await get_category_by_id(db, category_id)


@app.post("/api/categories", response_model=CategorySchema, status_code=201)
async def create_new_category(
    category: CategoryCreate,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    return await create_category(db, category)


@app.api_route("/api/categories/{category_id}", methods=["PUT", "PATCH"], response_model=CategorySchema)
async def update_existing_category(
    category_id: int,
    category: CategoryUpdate,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    return await update_category(db, category_id, category)


@app.delete("/api/categories/{category_id}")
async def delete_existing_category(
    category_id: int,
    background_tasks: BackgroundTasks,
    claims: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await delete_category(db, category_id)
    background_tasks.add_task(
        publish_log_event, ServiceName.products, LogLevel.warning, f"Category {category_id} deleted", claims.username
    )
    return {"message": "Category deleted"}
