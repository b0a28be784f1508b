import json
from typing import Any, Dict, List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PLANS_JSON = json.dumps({
    # price - в центах
    "free": {"credits": 10, "valid_days": 30, "interval": "month", "membership": False, "price": 0},
    "plus-monthly": {"credits": 600, "valid_days": 30, "interval": "month", "membership": True, "price": 999},
    "pro-monthly": {"credits": 2000, "valid_days": 30, "interval": "month", "membership": True, "price": 1999},
    "plus-yearly": {"credits": 600, "valid_days": 30, "interval": "year", "membership": True, "price": 8388},
    "pro-yearly": {"credits": 2000, "valid_days": 30, "interval": "year", "membership": True, "price": 16788},
})


class Settings(BaseSettings):
    # Настройки базы данных
    DATABASE_USER: str
    DATABASE_PASSWORD: str
    DATABASE_HOST: str
    DATABASE_PORT: int
    DATABASE_NAME: str

    # Настройки JWT токенов (выпускает внешний сервис авторизации)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    SUPER_ADMIN_USER_IDS_STR: str = Field(default="", alias="SUPER_ADMIN_USER_IDS")

    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    RATE_LIMIT_STORAGE_URI: str | None = None
    REDEEM_RATE_LIMIT: str = "10/minute"

    # Срок жизни кредитов по кодам-кредитам (дней). 0 - бессрочно
    CREDIT_VALIDITY_DAYS: int = 30

    # Каталог тарифов: единственный источник правды для количества кредитов
    PLANS_JSON: str = Field(default=DEFAULT_PLANS_JSON)
    PLANS: Dict[str, Any] = Field(default_factory=dict, validate_default=True)

    COMMISSION_RATE: float = 0.20
    COMMISSION_CURRENCY: str = "USD"

    PAYMENT_WEBHOOK_SECRET: str = ""
    ENABLED_PAYMENT_PROVIDERS: str = "manual"

    SCHEDULER_TIMEZONE: str = "UTC"

    CORS_ORIGINS_STR: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")

    LOG_LEVEL: str = "INFO"

    @property
    def SUPER_ADMIN_USER_IDS(self) -> List[str]:
        return [user_id.strip() for user_id in self.SUPER_ADMIN_USER_IDS_STR.split(',') if user_id.strip()]

    @property
    def CORS_ORIGINS(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS_STR.split(',') if origin.strip()]

    @property
    def PAYMENT_PROVIDERS(self) -> List[str]:
        return [name.strip().lower() for name in self.ENABLED_PAYMENT_PROVIDERS.split(',') if name.strip()]

    @field_validator("PLANS", mode="before")
    def parse_plans(cls, v, values):
        # values.data уже содержит PLANS_JSON, так как поле объявлено выше
        json_str = values.data.get("PLANS_JSON")
        if json_str:
            return json.loads(json_str)
        return v

    @property
    def REDIS_URL(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}"

    @property
    def DATABASE_URL(self) -> str:
        return f"postgresql+psycopg2://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"

    model_config = SettingsConfigDict(env_file=".env", populate_by_name=True)

settings = Settings()
