# app/dependencies.py

import logging
from dataclasses import dataclass, field
from typing import Iterator, List
from contextlib import contextmanager

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from jose import JWTError, jwt
from fastapi import Request
from app.clients.payment_providers import ProviderRegistry
from app.core.config import settings
from app.core.errors import ErrorKind
from app.core.locales import error_message
from app.db.session import SessionLocal

# --- Инициализация логгера ---
logger = logging.getLogger(__name__)

# --- Схемы аутентификации ---
strict_bearer_scheme = HTTPBearer(auto_error=True)

# --- Управление сессией БД ---
def get_db_session_instance() -> Session:
    """Создает и возвращает экземпляр сессии БД."""
    return SessionLocal()

def get_db() -> Iterator[Session]:
    """
    Основная зависимость FastAPI для получения сессии БД.
    Это генератор, который корректно работает с `Depends`.
    """
    db = get_db_session_instance()
    try:
        yield db
    finally:
        db.close()

@contextmanager
def get_db_context() -> Iterator[Session]:
    """
    Контекстный менеджер для получения сессии БД вне FastAPI (для фоновых задач и скриптов).
    """
    db = get_db_session_instance()
    try:
        yield db
    finally:
        db.close()

def get_provider_registry(request: Request) -> ProviderRegistry:
    return request.app.state.payment_providers

# --- Зависимости аутентификации и авторизации ---

@dataclass
class Principal:
    """Пользователь, уже аутентифицированный внешним сервисом (JWT)."""
    user_id: str
    permissions: List[str] = field(default_factory=list)

    @property
    def is_super_admin(self) -> bool:
        return self.user_id in settings.SUPER_ADMIN_USER_IDS

    def has_permission(self, code: str) -> bool:
        return self.is_super_admin or "*" in self.permissions or code in self.permissions


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(strict_bearer_scheme),
) -> Principal:
    """
    ОБЯЗАТЕЛЬНАЯ зависимость.
    Требует валидный токен. Если его нет или он невалиден - вызывает ошибку 401.
    """
    logger.debug("Dependency 'get_current_user' starting...")

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT Error during token decoding: {e}")
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("Token payload is missing 'sub' (user_id).")
        raise credentials_exception

    permissions = payload.get("permissions") or []
    if isinstance(permissions, str):
        permissions = [p.strip() for p in permissions.split(",") if p.strip()]

    principal = Principal(user_id=str(user_id), permissions=list(permissions))
    # Нужен лимитеру для ключа "по пользователю"
    request.state.user = principal
    logger.debug(f"Successfully authenticated user ID: {principal.user_id}")
    return principal


def require_permission(code: str):
    """
    Фабрика зависимостей для админских эндпоинтов.
    Пропускает суперадминов (SUPER_ADMIN_USER_IDS) и владельцев права `code`.
    """
    def dependency(current_user: Principal = Depends(get_current_user)) -> Principal:
        if not current_user.has_permission(code):
            logger.warning(f"Permission '{code}' denied for user {current_user.user_id}.")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=error_message(ErrorKind.PERMISSION_DENIED),
            )
        logger.info(f"Permission '{code}' GRANTED for user {current_user.user_id}.")
        return current_user
    return dependency
