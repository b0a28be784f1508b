# app/models/redemption.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.utils.clock import utcnow
from app.utils.identifiers import new_id


class RedemptionCode(Base):
    __tablename__ = "redemption_codes"
    id = Column(String(36), primary_key=True, default=new_id)

    # Открытый текст кода не храним: только sha256 нормализованного кода и маску
    code_hash = Column(String(64), unique=True, index=True, nullable=False)
    code_preview = Column(String(32), nullable=False)

    # 'credits' или 'membership'
    type = Column(String(16), nullable=False, default="credits")
    credits = Column(Integer, nullable=False)
    plan_id = Column(String(64), nullable=True)
    membership_days = Column(Integer, nullable=True)
    credit_validity_days = Column(Integer, nullable=True)

    max_uses = Column(Integer, nullable=False, default=1)
    used_count = Column(Integer, nullable=False, default=0)
    # 'active' -> 'used' ровно в момент used_count == max_uses
    status = Column(String(16), nullable=False, default="active", index=True)

    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    records = relationship("RedemptionRecord", back_populates="code")


class RedemptionRecord(Base):
    __tablename__ = "redemption_records"
    id = Column(String(36), primary_key=True, default=new_id)
    code_id = Column(String(36), ForeignKey("redemption_codes.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    redeemed_at = Column(DateTime, default=utcnow, nullable=False)

    code = relationship("RedemptionCode", back_populates="records")

    __table_args__ = (
        UniqueConstraint("code_id", "user_id", name="uq_redemption_record_code_user"),
    )
