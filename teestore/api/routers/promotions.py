from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teestore.db.session_async import get_async_db
from teestore.schemas.promotion import PromotionRead
from teestore.services import pricing_service

router = APIRouter(prefix="/promotions", tags=["promotions"])


@router.get("/active", response_model=list[PromotionRead])
async def list_active_promotions(db: AsyncSession = Depends(get_async_db)):
    promotions = await pricing_service.list_current_promotions(db)
    return [PromotionRead.model_validate(promo, from_attributes=True) for promo in promotions]
