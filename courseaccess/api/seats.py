"""
团队席位接口
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from courseaccess.api.dependencies import get_seat_redemption_service
from courseaccess.models.redemption import RedemptionStatus
from courseaccess.services.seat_redemption_service import SeatRedemptionService

router = APIRouter(prefix="/seats", tags=["团队席位"])

STATUS_CODES = {
    RedemptionStatus.REDEEMED: status.HTTP_200_OK,
    RedemptionStatus.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RedemptionStatus.SEAT_UNAVAILABLE: status.HTTP_409_CONFLICT,
    RedemptionStatus.ALREADY_REDEEMED: status.HTTP_409_CONFLICT,
    RedemptionStatus.INVALID_COUPON: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


class RedeemSeatRequest(BaseModel):
    user_id: str = Field(..., min_length=1, description="兑换用户ID")


@router.get("/{bulk_coupon_id}")
async def get_remaining_seats(
    bulk_coupon_id: str,
    seat_service: SeatRedemptionService = Depends(get_seat_redemption_service)
):
    """查询剩余席位"""
    remaining = await seat_service.remaining_seats(bulk_coupon_id)
    if remaining is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="席位池不存在")
    return {"bulk_coupon_id": bulk_coupon_id, "remaining_seats": remaining}


@router.post("/{bulk_coupon_id}/redeem")
async def redeem_seat(
    bulk_coupon_id: str,
    request: RedeemSeatRequest,
    seat_service: SeatRedemptionService = Depends(get_seat_redemption_service)
):
    """兑换一个团队席位"""
    result = await seat_service.redeem_bulk_seat(bulk_coupon_id, request.user_id)
    return JSONResponse(
        status_code=STATUS_CODES[result.status],
        content=result.model_dump(mode="json")
    )
