import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SqlEnum,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from teestore.db.session import Base
from teestore.domain.enums import DiscountType, PromotionType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Promotion(Base):
    __tablename__ = "promotions"
    __table_args__ = (
        Index("ix_promotions_is_active", "is_active"),
        Index("ix_promotions_start_end", "start_at", "end_at"),
        CheckConstraint("start_at < end_at", name="ck_promotions_window"),
        CheckConstraint("discount_value > 0", name="ck_promotions_discount_value"),
        CheckConstraint("current_usage >= 0", name="ck_promotions_current_usage"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(180), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    discount_type: Mapped[DiscountType] = mapped_column(
        SqlEnum(DiscountType), default=DiscountType.percentage, nullable=False
    )
    discount_value: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    promotion_type: Mapped[PromotionType] = mapped_column(
        SqlEnum(PromotionType), default=PromotionType.store_wide, nullable=False
    )
    # listas de ids serializadas como strings
    applicable_categories: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    applicable_products: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    minimum_purchase: Mapped[float | None] = mapped_column(Numeric(10, 2), nullable=True)
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_usage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    highlight_color: Mapped[str | None] = mapped_column(String(16), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
