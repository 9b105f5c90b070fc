# teestore/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from teestore.api.error_handlers import register_exception_handlers
from teestore.api.routers import (
    admin_coupons,
    admin_promotions,
    cart,
    categories,
    coupons,
    orders,
    products,
    promotions,
)
from teestore.core.config import settings
from teestore.core.logging import setup_logging
from teestore.core.metrics import export_metrics
from teestore.middleware import ObservabilityMiddleware

# --- Models registration (necesario para que Alembic los detecte) ---
import teestore.models.catalog    # noqa: F401
import teestore.models.promotion  # noqa: F401
import teestore.models.coupon     # noqa: F401
import teestore.models.cart       # noqa: F401
import teestore.models.order      # noqa: F401

setup_logging()

# --- Metadatos de la API para la documentación ---
TAGS_METADATA = [
    {"name": "products", "description": "Catalogo de productos y precios resueltos."},
    {"name": "categories", "description": "Categorias de productos."},
    {"name": "promotions", "description": "Promociones vigentes para la tienda."},
    {"name": "admin-promotions", "description": "Gestion de promociones y cache de precios (administracion)."},
    {"name": "coupons", "description": "Cupones publicos y validacion de codigos."},
    {"name": "admin-coupons", "description": "Gestion y generacion de cupones (administracion)."},
    {"name": "cart", "description": "Carritos de invitados y cotizacion del checkout."},
    {"name": "orders", "description": "Checkout y consulta de ordenes."},
]

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    description=(
        "API de la tienda de remeras.\n\n"
        "- **Products**: Catálogo con el precio final de cada producto.\n"
        "- **Promotions**: Una sola promoción por producto, elegida por prioridad.\n"
        "- **Coupons**: Validación de códigos y canje atómico en el checkout.\n"
        "- **Cart / Orders**: Carritos de invitados y colocación de órdenes."
    ),
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# --- Middlewares ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)

register_exception_handlers(app)

# --- Routers ---
app.include_router(categories.router, prefix=settings.API_V1_STR)
app.include_router(products.router, prefix=settings.API_V1_STR)
app.include_router(promotions.router, prefix=settings.API_V1_STR)
app.include_router(admin_promotions.router, prefix=settings.API_V1_STR)
app.include_router(coupons.router, prefix=settings.API_V1_STR)
app.include_router(admin_coupons.router, prefix=settings.API_V1_STR)
app.include_router(cart.router, prefix=settings.API_V1_STR)
app.include_router(orders.router, prefix=settings.API_V1_STR)


@app.get("/metrics", include_in_schema=False)
def metrics():
    payload, content_type = export_metrics()
    return Response(content=payload, media_type=content_type)


# --- Endpoint raíz ---
@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "docs_url": "/docs", "redoc_url": "/redoc"}
