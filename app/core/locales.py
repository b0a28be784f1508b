# app/core/locales.py

from app.core.errors import ErrorKind

# Сообщения об ошибках
ERROR_MESSAGES = {
    ErrorKind.INVALID_CODE: "Неверный код активации.",
    ErrorKind.CODE_USED_OR_EXPIRED: "Код уже использован или недействителен.",
    ErrorKind.CODE_EXPIRED: "Срок действия кода истек.",
    ErrorKind.CODE_USAGE_LIMIT_REACHED: "Лимит активаций кода исчерпан.",
    ErrorKind.ALREADY_REDEEMED: "Вы уже активировали этот код.",
    ErrorKind.INSUFFICIENT_CREDITS: "Недостаточно кредитов. Возможно, ваш баланс изменился.",
    ErrorKind.INVALID_PLAN: "Выбран несуществующий тариф.",
    ErrorKind.PERMISSION_DENIED: "Недостаточно прав для выполнения операции.",
    ErrorKind.UNRECOGNIZED_EVENT_STATUS: "Неизвестный статус платежа.",
    ErrorKind.INVALID_AMOUNT: "Сумма должна быть положительной.",
    ErrorKind.ORDER_NOT_FOUND: "Заказ не найден.",
    ErrorKind.SUBSCRIPTION_NOT_ACTIVE: "Подписка не активна.",
    ErrorKind.WITHDRAWAL_NOT_FOUND: "Заявка на вывод не найдена.",
    ErrorKind.INVALID_WITHDRAWAL_TRANSITION: "Заявку в текущем статусе нельзя перевести в запрошенный.",
    ErrorKind.INSUFFICIENT_COMMISSION_BALANCE: "Недостаточно средств для вывода.",
    ErrorKind.UNKNOWN_PROVIDER: "Платежный провайдер не подключен.",
    ErrorKind.MISSING_TRANSACTION_ID: "В событии продления нет идентификатора транзакции.",
    ErrorKind.PROVIDER_ERROR: "Платежный провайдер отклонил запрос.",
}

# Сообщения об успехе
SUCCESS_CODE_REDEEMED = "Код активирован. Начислено {credits} кредитов."


def error_message(kind: ErrorKind) -> str:
    return ERROR_MESSAGES.get(kind, kind.value)
