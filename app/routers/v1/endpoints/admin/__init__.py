# app/routers/v1/endpoints/admin/__init__.py

from fastapi import APIRouter, Depends
from app.dependencies import get_current_user

# 1. Импортируем все модули с роутерами из текущего пакета
from . import (
    redemption_codes,
    credits,
    withdrawals,
    tasks,
    subscriptions,
)

# 2. Главный роутер админского раздела.
#    Аутентификация обязательна для всех эндпоинтов, а конкретное право
#    (credits.write, withdrawals.review, ...) проверяется на уровне модуля.
router = APIRouter(
    tags=["Admin"],
    dependencies=[Depends(get_current_user)]
)

# 3. Подключаем роутеры из каждого модуля со своими префиксами.

# /admin/redemption-codes, /admin/redemption-codes/credits, /admin/redemption-codes/membership
router.include_router(redemption_codes.router, prefix="/redemption-codes")

# /admin/credits/adjust, /admin/credits/refund, /admin/credits/leaderboard
router.include_router(credits.router, prefix="/credits")

# /admin/withdrawals, /admin/withdrawals/{id}/approve|pay|reject
router.include_router(withdrawals.router, prefix="/withdrawals")

# /admin/subscriptions/assign, /admin/subscriptions/{subscription_no}/renew
router.include_router(subscriptions.router, prefix="/subscriptions")

# /admin/tasks, /admin/tasks/run
router.include_router(tasks.router, prefix="/tasks")
