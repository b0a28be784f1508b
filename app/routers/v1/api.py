# app/routers/v1/api.py

from fastapi import APIRouter

from app.routers.v1.endpoints import credits, subscriptions, affiliate, orders
from app.routers.v1.endpoints import admin as admin_v1_router

# Главный роутер API версии v1
# Все пути, подключенные к нему, будут иметь префикс /api/v1
api_router = APIRouter(prefix="/v1")

# Пользовательские эндпоинты
api_router.include_router(credits.router, tags=["Credits"])
api_router.include_router(subscriptions.router, tags=["Subscriptions"])
api_router.include_router(orders.router, tags=["Orders"])
api_router.include_router(affiliate.router, tags=["Affiliate"])

# Админские эндпоинты
api_router.include_router(admin_v1_router.router, prefix="/admin")
