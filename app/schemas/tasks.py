# app/schemas/tasks.py
from pydantic import BaseModel
from typing import Literal

class TaskInfo(BaseModel):
    """Описание одной фоновой задачи."""
    task_name: str
    description: str

class TaskRunRequest(BaseModel):
    """Схема для запроса на запуск задачи."""
    # Literal ограничивает значения и дает автодополнение в Swagger
    task_name: Literal[
        "all",
        "grant_monthly_subscription_credits",
    ]
