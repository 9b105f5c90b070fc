from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from teestore.db.operations import commit_async, rollback_async
from teestore.db.session_async import get_async_db
from teestore.schemas.order import CheckoutPayload, OrderRead
from teestore.services import order_service
from teestore.services.exceptions import ServiceError

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/checkout", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
async def checkout(payload: CheckoutPayload, db: AsyncSession = Depends(get_async_db)):
    try:
        order = await order_service.checkout(db, payload)
        await commit_async(db)
    except ServiceError:
        # deshace los contadores de uso ya incrementados
        await rollback_async(db)
        raise
    return order


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(order_id: UUID, db: AsyncSession = Depends(get_async_db)):
    return await order_service.get_order(db, order_id)
