# app/crud/order.py
from sqlalchemy.orm import Session

from app.models.order import Order


def get_order_by_no(db: Session, order_no: str) -> Order | None:
    no = str(order_no or "").strip()
    if not no:
        return None
    return db.query(Order).filter(Order.order_no == no).first()

def lock_order_by_no(db: Session, order_no: str) -> Order | None:
    """Блокирует строку заказа: повторные доставки веб-хука ждут здесь своей очереди."""
    return db.query(Order).filter(Order.order_no == order_no).with_for_update().first()

def get_order_by_transaction_id(db: Session, transaction_id: str) -> Order | None:
    return db.query(Order).filter(Order.transaction_id == transaction_id).first()

def get_order_by_id(db: Session, order_id: str) -> Order | None:
    return db.query(Order).filter(Order.id == order_id).first()
