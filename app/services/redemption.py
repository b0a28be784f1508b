# app/services/redemption.py

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import List, Tuple
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ErrorKind, Ok, Err, Result
from app.crud import credit as crud_credit
from app.crud import redemption as crud_redemption
from app.models.order import Order
from app.models.redemption import RedemptionCode
from app.schemas.common import total_pages_for
from app.schemas.redemption import IssuedCodes, PaginatedRedemptionCodes, RedemptionOutcome
from app.services import subscription as subscription_service
from app.services.credit import calculate_credit_expiration_time
from app.utils.clock import utcnow, to_naive_utc
from app.utils.identifiers import new_order_no

logger = logging.getLogger(__name__)

# Без 0/O и 1/I
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 16
CODE_GROUP = 4
# Провайдер, которым помечаются заказы и подписки, созданные активацией кода
REDEMPTION_PROVIDER = "redemption"


def generate_code() -> str:
    raw = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
    return "-".join(raw[i:i + CODE_GROUP] for i in range(0, CODE_LENGTH, CODE_GROUP))


def normalize_code(code: str) -> str:
    """'  abcd efgh-1234 5678 ' -> 'ABCD-EFGH-1234-5678'. Негруппированные 16 символов тоже группируются."""
    cleaned = "".join((code or "").split()).upper()
    if "-" not in cleaned and len(cleaned) == CODE_LENGTH:
        cleaned = "-".join(cleaned[i:i + CODE_GROUP] for i in range(0, CODE_LENGTH, CODE_GROUP))
    return cleaned


def hash_code(code: str) -> str:
    return hashlib.sha256(normalize_code(code).encode("utf-8")).hexdigest()


def mask_code(code: str) -> str:
    groups = normalize_code(code).split("-")
    if len(groups) < 2:
        return "****"
    return "-".join([groups[0]] + ["****"] * (len(groups) - 2) + [groups[-1]])


def _generate_unique_codes(db: Session, quantity: int) -> List[str]:
    codes: List[str] = []
    seen = set()
    while len(codes) < quantity:
        code = generate_code()
        digest = hash_code(code)
        if digest in seen or crud_redemption.code_hash_exists(db, digest):
            continue
        seen.add(digest)
        codes.append(code)
    return codes


def _persist_codes(db: Session, codes: List[str], **fields) -> None:
    try:
        for code in codes:
            db.add(RedemptionCode(code_hash=hash_code(code), code_preview=mask_code(code), **fields))
        db.commit()
    except Exception:
        db.rollback()
        logger.error("Failed to persist issued redemption codes", exc_info=True)
        raise


def issue_credit_codes(
    db: Session,
    credits: int,
    quantity: int,
    max_uses: int = 1,
    validity_days: int | None = None,
    expires_at: datetime | None = None,
    created_by: str | None = None,
) -> Result[IssuedCodes]:
    """
    Выпускает пачку кодов на кредиты.
    Открытый текст возвращается ОДИН раз, в БД остаются только хеш и маска.
    """
    if credits <= 0 or quantity <= 0 or max_uses <= 0:
        return Err(ErrorKind.INVALID_AMOUNT)
    if validity_days is None:
        validity_days = settings.CREDIT_VALIDITY_DAYS

    codes = _generate_unique_codes(db, quantity)
    _persist_codes(
        db, codes,
        type="credits",
        credits=credits,
        max_uses=max_uses,
        credit_validity_days=validity_days,
        created_by=created_by,
        expires_at=to_naive_utc(expires_at),
    )
    logger.info(f"Issued {quantity} credit code(s) of {credits} credits (max_uses={max_uses}) by {created_by}")
    return Ok(IssuedCodes(type="credits", credits=credits, codes=codes))


def issue_membership_codes(
    db: Session,
    plan_id: str,
    quantity: int,
    membership_days: int,
    expires_at: datetime | None = None,
    created_by: str | None = None,
) -> Result[IssuedCodes]:
    """Выпускает коды на членство. Количество кредитов берется из каталога тарифов."""
    plan = settings.PLANS.get(plan_id)
    if not plan or not plan.get("membership"):
        return Err(ErrorKind.INVALID_PLAN, plan_id)
    if quantity <= 0 or membership_days <= 0:
        return Err(ErrorKind.INVALID_AMOUNT)

    credits = int(plan.get("credits", 0))
    codes = _generate_unique_codes(db, quantity)
    _persist_codes(
        db, codes,
        type="membership",
        credits=credits,
        plan_id=plan_id,
        membership_days=membership_days,
        credit_validity_days=membership_days,
        max_uses=1,
        created_by=created_by,
        expires_at=to_naive_utc(expires_at),
    )
    logger.info(f"Issued {quantity} membership code(s) for plan '{plan_id}' ({membership_days} days) by {created_by}")
    return Ok(IssuedCodes(type="membership", credits=credits, plan_id=plan_id, codes=codes))


def _validate(db: Session, code: RedemptionCode | None, user_id: str, now: datetime) -> Err | None:
    if code is None:
        return Err(ErrorKind.INVALID_CODE)
    # Повторная попытка того же пользователя всегда "already_redeemed", даже если код уже исчерпан
    if crud_redemption.get_record(db, code.id, user_id):
        return Err(ErrorKind.ALREADY_REDEEMED)
    if code.status != "active":
        return Err(ErrorKind.CODE_USED_OR_EXPIRED)
    if code.expires_at and now > code.expires_at:
        return Err(ErrorKind.CODE_EXPIRED)
    if code.used_count >= code.max_uses:
        return Err(ErrorKind.CODE_USAGE_LIMIT_REACHED)
    if code.type == "membership" and code.plan_id not in settings.PLANS:
        return Err(ErrorKind.INVALID_PLAN, code.plan_id or "")
    return None


def _grant_membership(db: Session, code: RedemptionCode, user_id: str, now: datetime) -> Tuple[str, str]:
    """Заказ на 0 + новая подписка на membership_days. Возвращает (order_no, subscription_no)."""
    plan = settings.PLANS[code.plan_id]
    period_end = now + timedelta(days=code.membership_days)
    order = Order(
        order_no=new_order_no(),
        user_id=user_id,
        status="paid",
        amount=0,
        product_id=code.plan_id,
        product_name=code.plan_id,
        payment_type="one_time",
        payment_interval=plan.get("interval"),
        payment_provider=REDEMPTION_PROVIDER,
        paid_at=now,
        credits_amount=code.credits,
        credits_valid_days=code.membership_days,
        description=f"Membership code {code.code_preview}",
    )
    db.add(order)
    db.flush()

    subscription = subscription_service.create_subscription(
        db,
        user_id=user_id,
        plan_id=code.plan_id,
        period_start=now,
        period_end=period_end,
        order_id=order.id,
        payment_provider=REDEMPTION_PROVIDER,
        subscription_id=f"code_{code.id}",
        interval=plan.get("interval"),
        amount=0,
        currency=order.currency,
        credits_amount=code.credits,
        credits_valid_days=plan.get("valid_days"),
    )
    order.subscription_no = subscription.subscription_no
    order.subscription_id = subscription.subscription_id
    return order.order_no, subscription.subscription_no


def redeem(db: Session, code: str, user_id: str) -> Result[RedemptionOutcome]:
    """
    Активирует код в ОДНОЙ транзакции: блокировка строки кода, проверки,
    счетчик использований, запись активации, (для членства) заказ и подписка, начисление.
    Любое исключение откатывает все.
    """
    normalized = normalize_code(code)
    now = utcnow()
    try:
        locked = crud_redemption.lock_code_by_hash(db, hash_code(normalized))
        error = _validate(db, locked, user_id, now)
        if error:
            db.rollback()
            logger.info(f"Redemption rejected for user {user_id}: {error.kind.value}")
            return error

        locked.used_count += 1
        if locked.used_count >= locked.max_uses:
            locked.status = "used"
        crud_redemption.create_record(db, code_id=locked.id, user_id=user_id, redeemed_at=now)

        order_no = subscription_no = None
        if locked.type == "membership":
            order_no, subscription_no = _grant_membership(db, locked, user_id, now)
            valid_days = locked.membership_days
        else:
            valid_days = locked.credit_validity_days

        if locked.credits > 0:
            crud_credit.create_grant(
                db,
                user_id=user_id,
                credits=locked.credits,
                scene="redemption",
                expires_at=calculate_credit_expiration_time(valid_days, now=now),
                order_no=order_no,
                subscription_no=subscription_no,
                description=f"Redeemed code: {locked.code_preview}",
            )
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Redemption failed for user {user_id}", exc_info=True)
        raise

    logger.info(f"User {user_id} redeemed code {locked.code_preview}: {locked.credits} credits ({locked.type})")
    return Ok(RedemptionOutcome(credits=locked.credits, type=locked.type, plan_id=locked.plan_id))


def list_codes(db: Session, page: int = 1, size: int = 20) -> PaginatedRedemptionCodes:
    skip = (page - 1) * size
    total_items = crud_redemption.count_codes(db)
    return PaginatedRedemptionCodes(
        total_items=total_items,
        total_pages=total_pages_for(total_items, size),
        current_page=page,
        size=size,
        items=crud_redemption.get_codes(db, skip=skip, limit=size),
    )
