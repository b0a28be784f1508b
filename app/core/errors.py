# app/core/errors.py

"""
Типизированные результаты операций леджера.

Ожидаемые отказы (невалидный код, недостаточно кредитов и т.п.) возвращаются
как значение `Err`, а не бросаются исключением. Исключения остаются только для
действительно неожиданных ситуаций (ошибки хранилища, неизвестный статус события),
которые обязаны откатить транзакцию.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    INVALID_CODE = "invalid_code"
    CODE_USED_OR_EXPIRED = "code_used_or_expired"
    CODE_EXPIRED = "code_expired"
    CODE_USAGE_LIMIT_REACHED = "code_usage_limit_reached"
    ALREADY_REDEEMED = "already_redeemed"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    INVALID_PLAN = "invalid_plan"
    PERMISSION_DENIED = "permission_denied"
    UNRECOGNIZED_EVENT_STATUS = "unrecognized_event_status"

    INVALID_AMOUNT = "invalid_amount"
    ORDER_NOT_FOUND = "order_not_found"
    SUBSCRIPTION_NOT_ACTIVE = "subscription_not_active"
    WITHDRAWAL_NOT_FOUND = "withdrawal_not_found"
    INVALID_WITHDRAWAL_TRANSITION = "invalid_withdrawal_transition"
    INSUFFICIENT_COMMISSION_BALANCE = "insufficient_commission_balance"
    UNKNOWN_PROVIDER = "unknown_provider"
    MISSING_TRANSACTION_ID = "missing_transaction_id"
    PROVIDER_ERROR = "provider_error"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    detail: str = ""

    @property
    def is_ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


class UnrecognizedEventStatus(Exception):
    """Статус платежного события, который процессор не умеет обрабатывать. Фатально."""

    kind = ErrorKind.UNRECOGNIZED_EVENT_STATUS

    def __init__(self, order_no: str, status: str):
        self.order_no = order_no
        self.status = status
        super().__init__(f"Unrecognized payment status '{status}' for order {order_no}")
