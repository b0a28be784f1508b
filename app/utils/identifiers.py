# app/utils/identifiers.py

import uuid
import secrets
from datetime import datetime


def new_id() -> str:
    return str(uuid.uuid4())


def _time_prefixed(prefix: str) -> str:
    return f"{prefix}{datetime.now().strftime('%Y%m%d%H%M%S')}{secrets.token_hex(4).upper()}"


def new_order_no() -> str:
    return _time_prefixed("ORD")


def new_transaction_no() -> str:
    return _time_prefixed("TXN")


def new_subscription_no() -> str:
    return _time_prefixed("SUB")
