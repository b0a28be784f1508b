# app/tasks_registry.py

from app.services import subscription_credits

# --- Обертки задач. Каждая задача сама открывает свои сессии БД ---

async def run_grant_monthly_subscription_credits():
    return await subscription_credits.grant_monthly_subscription_credits_task()


# --- Словарь-реестр всех задач, доступных для ручного запуска ---
# Ключ - уникальное имя задачи, которое будет использоваться в API.
# 'function' - сама функция для вызова.
# 'description' - описание для отображения в админке.
# 'is_async' - флаг, чтобы FastAPI знал, как запускать задачу.

TASKS = {
    "grant_monthly_subscription_credits": {
        "function": run_grant_monthly_subscription_credits,
        "description": "Начисляет ежемесячные кредиты владельцам годовых подписок.",
        "is_async": True,
    },
}

# Отдельная функция для получения списка задач для API
def get_tasks_list():
    return [
        {"task_name": name, "description": data["description"]}
        for name, data in TASKS.items()
    ]
