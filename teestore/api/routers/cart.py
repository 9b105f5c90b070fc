from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from teestore.db.operations import commit_async
from teestore.db.session_async import get_async_db
from teestore.schemas.cart import (
    CartCouponPayload,
    CartCreate,
    CartItemCreate,
    CartItemUpdate,
    CartRead,
    CheckoutQuoteRead,
)
from teestore.services import cart_service

router = APIRouter(prefix="/cart", tags=["cart"])

_TOKEN = Query(..., description="Token del carrito invitado")


@router.post("", response_model=CartRead, status_code=status.HTTP_201_CREATED)
async def create_or_get_cart(
    payload: CartCreate,
    response: Response,
    db: AsyncSession = Depends(get_async_db),
):
    existing = await cart_service.get_active_cart(db, payload.guest_token)
    if existing:
        response.status_code = status.HTTP_200_OK
        return existing
    cart = await cart_service.create_cart(db, payload)
    await commit_async(db)
    return cart


@router.get("", response_model=CartRead)
async def get_cart(guest_token: str = _TOKEN, db: AsyncSession = Depends(get_async_db)):
    return await cart_service.require_active_cart(db, guest_token)


@router.post("/items", response_model=CartRead, status_code=status.HTTP_201_CREATED)
async def add_cart_item(
    item: CartItemCreate,
    guest_token: str = _TOKEN,
    db: AsyncSession = Depends(get_async_db),
):
    cart = await cart_service.get_active_cart(db, guest_token)
    if not cart:
        cart = await cart_service.create_cart(db, CartCreate(guest_token=guest_token))
    updated = await cart_service.add_item(db, cart=cart, item_payload=item)
    await commit_async(db)
    return updated


@router.put("/items/{item_id}", response_model=CartRead)
async def update_cart_item(
    item_id: UUID,
    payload: CartItemUpdate,
    guest_token: str = _TOKEN,
    db: AsyncSession = Depends(get_async_db),
):
    cart = await cart_service.require_active_cart(db, guest_token)
    updated = await cart_service.update_item(db, cart=cart, item_id=item_id, payload=payload)
    await commit_async(db)
    return updated


@router.delete("/items/{item_id}", response_model=CartRead)
async def remove_cart_item(
    item_id: UUID,
    guest_token: str = _TOKEN,
    db: AsyncSession = Depends(get_async_db),
):
    cart = await cart_service.require_active_cart(db, guest_token)
    updated = await cart_service.remove_item(db, cart=cart, item_id=item_id)
    await commit_async(db)
    return updated


@router.put("/coupon", response_model=CartRead)
async def apply_coupon(
    payload: CartCouponPayload,
    guest_token: str = _TOKEN,
    db: AsyncSession = Depends(get_async_db),
):
    cart = await cart_service.require_active_cart(db, guest_token)
    updated = await cart_service.apply_coupon(db, cart=cart, code=payload.code)
    await commit_async(db)
    return updated


@router.delete("/coupon", response_model=CartRead)
async def remove_coupon(guest_token: str = _TOKEN, db: AsyncSession = Depends(get_async_db)):
    cart = await cart_service.require_active_cart(db, guest_token)
    updated = await cart_service.remove_coupon(db, cart=cart)
    await commit_async(db)
    return updated


@router.get("/quote", response_model=CheckoutQuoteRead)
async def checkout_quote(guest_token: str = _TOKEN, db: AsyncSession = Depends(get_async_db)):
    cart = await cart_service.require_active_cart(db, guest_token)
    quote = await cart_service.quote_checkout(db, cart)
    return quote.to_schema()
