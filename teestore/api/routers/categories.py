from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from teestore.db.operations import commit_async
from teestore.db.session_async import get_async_db
from teestore.schemas.catalog import CategoryCreate, CategoryRead
from teestore.services import catalog_service

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=list[CategoryRead])
async def list_categories(
    include_inactive: bool = Query(default=False),
    db: AsyncSession = Depends(get_async_db),
):
    return await catalog_service.list_categories(db, only_active=not include_inactive)


@router.post("", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    db: AsyncSession = Depends(get_async_db),
):
    category = await catalog_service.create_category(db, payload)
    await commit_async(db)
    return category
