"""
Per-currency tier tables: one row per customer per month per line.
Tables: tier_usc_v1, tier_sgd_v1, tier_myr_v1 (month stored as "November").
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Integer, String
from sqlalchemy.orm import DeclarativeBase

from tier_engine.schemas.tier_request import Currency


class Base(DeclarativeBase):
    pass


class TierRowMixin:
    userkey = Column(String(100), primary_key=True)
    year = Column(Integer, primary_key=True)
    month = Column(String(12), primary_key=True)
    line = Column(String(50), primary_key=True)

    unique_code = Column(String(100), nullable=True, index=True)
    user_name = Column(String(200), nullable=True)

    # ── Monthly aggregates ──
    total_deposit_amount = Column(Float, nullable=False, default=0)
    total_deposit_cases = Column(Float, nullable=False, default=0)
    total_withdraw_amount = Column(Float, nullable=False, default=0)
    total_withdraw_cases = Column(Float, nullable=False, default=0)
    total_ggr = Column(Float, nullable=False, default=0)
    active_days = Column(Float, nullable=False, default=0)

    # ── Derived ──
    avg_transaction_value = Column(Float, nullable=True)
    purchase_frequency = Column(Float, nullable=True)
    win_rate = Column(Float, nullable=True)

    # ── Tier outputs ──
    tier = Column(Integer, nullable=True)
    tier_name = Column(String(50), nullable=True)
    tier_group = Column(String(50), nullable=True)
    score = Column(Float, nullable=True)
    potential_score = Column(Float, nullable=True)
    potential_tier = Column(String(10), nullable=True)

    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=True)

    def __repr__(self):
        return f"<{type(self).__name__} {self.userkey} {self.year}-{self.month} {self.line} tier={self.tier}>"


class TierUSC(TierRowMixin, Base):
    __tablename__ = "tier_usc_v1"


class TierSGD(TierRowMixin, Base):
    __tablename__ = "tier_sgd_v1"


class TierMYR(TierRowMixin, Base):
    __tablename__ = "tier_myr_v1"


TIER_MODELS = {
    Currency.USC: TierUSC,
    Currency.SGD: TierSGD,
    Currency.MYR: TierMYR,
}
