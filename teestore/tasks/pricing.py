from __future__ import annotations

import asyncio
from typing import Optional
from uuid import UUID

from teestore.core.celery_app import celery_app
from teestore.core.logging import get_logger
from teestore.db.operations import commit_async
from teestore.db.session_async import AsyncSessionLocal
from teestore.services import coupon_service, pricing_service

logger = get_logger(__name__)


async def _run_async(func, *args, **kwargs):
    async with AsyncSessionLocal() as session:
        result = await func(session, *args, **kwargs)
        await commit_async(session)
        return result


def _run(func, *args, **kwargs):
    return asyncio.run(_run_async(func, *args, **kwargs))


@celery_app.task(name="pricing.refresh_price_cache")
def refresh_price_cache(product_ids: Optional[list[str]] = None) -> dict:
    ids = [UUID(str(value)) for value in product_ids] if product_ids else None
    report = _run(pricing_service.refresh_price_cache, ids)
    if report.issues:
        logger.warning("Price cache refresh found inconsistencies", extra={"issues": len(report.issues)})
    return report.model_dump(mode="json")


@celery_app.task(name="coupons.deactivate_expired")
def deactivate_expired_coupons() -> int:
    return _run(coupon_service.deactivate_expired)
