# storefront/api/__init__.py
from fastapi import FastAPI

from storefront.api.routers import carts, coupons, health, orders, products, sales


def include_routers(app: FastAPI) -> FastAPI:
    app.include_router(health.router)
    app.include_router(products.router)
    app.include_router(carts.router)
    app.include_router(coupons.router)
    app.include_router(sales.router)
    app.include_router(orders.router)
    app.include_router(orders.admin_router)
    return app
