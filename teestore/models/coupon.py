import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SqlEnum,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from teestore.db.session import Base
from teestore.domain.enums import DiscountType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint("usage_count >= 0", name="ck_coupons_usage_count"),
        CheckConstraint("usage_count <= usage_limit", name="ck_coupons_usage_within_limit"),
        CheckConstraint("start_at < end_at", name="ck_coupons_window"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # se guarda siempre en mayúsculas
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    discount_type: Mapped[DiscountType] = mapped_column(
        SqlEnum(DiscountType), default=DiscountType.percentage, nullable=False
    )
    discount_value: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    usage_limit: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    minimum_purchase: Mapped[float] = mapped_column(Numeric(10, 2), default=0, nullable=False)

    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    banner_text: Mapped[str | None] = mapped_column(String(255), nullable=True)
    banner_color: Mapped[str | None] = mapped_column(String(16), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
