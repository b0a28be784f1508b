# app/routers/errors.py

from fastapi import HTTPException, status

from app.core.errors import ErrorKind, Err, Result
from app.core.locales import error_message

# Соответствие типизированных ошибок леджера HTTP-статусам
ERROR_STATUS_CODES = {
    ErrorKind.INVALID_CODE: status.HTTP_404_NOT_FOUND,
    ErrorKind.CODE_USED_OR_EXPIRED: status.HTTP_409_CONFLICT,
    ErrorKind.CODE_EXPIRED: status.HTTP_410_GONE,
    ErrorKind.CODE_USAGE_LIMIT_REACHED: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_REDEEMED: status.HTTP_409_CONFLICT,
    ErrorKind.INSUFFICIENT_CREDITS: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_PLAN: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.UNRECOGNIZED_EVENT_STATUS: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INVALID_AMOUNT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.ORDER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.SUBSCRIPTION_NOT_ACTIVE: status.HTTP_409_CONFLICT,
    ErrorKind.WITHDRAWAL_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_WITHDRAWAL_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.INSUFFICIENT_COMMISSION_BALANCE: status.HTTP_409_CONFLICT,
    ErrorKind.UNKNOWN_PROVIDER: status.HTTP_404_NOT_FOUND,
    ErrorKind.MISSING_TRANSACTION_ID: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.PROVIDER_ERROR: status.HTTP_502_BAD_GATEWAY,
}


def http_error(err: Err) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS_CODES.get(err.kind, status.HTTP_400_BAD_REQUEST),
        detail={"error": err.kind.value, "message": error_message(err.kind)},
    )


def unwrap(result: Result):
    """Возвращает значение Ok или превращает Err в HTTPException."""
    if not result.is_ok:
        raise http_error(result)
    return result.value
