# scripts/run_tasks_manually.py
import asyncio
import logging
import sys
import os

# Хак для корректной работы импортов
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app.tasks_registry import TASKS


async def main(task_names):
    """
    Поочередно запускает задачи из реестра (все, если имена не переданы).
    """
    names = task_names or list(TASKS)
    unknown = [name for name in names if name not in TASKS]
    if unknown:
        print(f"Unknown tasks: {', '.join(unknown)}. Available: {', '.join(TASKS)}")
        return

    print("--- Manual Task Runner ---")
    for i, name in enumerate(names, start=1):
        print(f"\n[{i}/{len(names)}] Running: {name}...")
        task = TASKS[name]
        if task["is_async"]:
            result = await task["function"]()
        else:
            # Синхронную задачу выполняем в отдельном потоке, не блокируя event loop
            result = await asyncio.to_thread(task["function"])
        print(f"Done. Result: {result}")

    print("\n--- All tasks completed! ---")


if __name__ == "__main__":
    # Настраиваем логирование, чтобы видеть вывод от наших сервисов
    logging.basicConfig(level=logging.INFO, stream=sys.stdout, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        asyncio.run(main(sys.argv[1:]))
    except KeyboardInterrupt:
        print("\nScript interrupted by user.")
