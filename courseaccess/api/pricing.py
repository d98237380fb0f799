"""
价格计算接口
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from courseaccess.api.dependencies import get_price_calculator_service
from courseaccess.models.price import PriceBreakdown
from courseaccess.services.price_calculator_service import PriceCalculatorService, calculate_price

router = APIRouter(prefix="/pricing", tags=["价格计算"])


class PriceQuoteRequest(BaseModel):
    """直接按参数计算价格"""

    base_price: Decimal = Field(..., description="单价")
    quantity: int = Field(default=1, description="数量")
    percentage_discount: Optional[Decimal] = Field(None, description="折扣率(0-1)")
    fixed_discount: Optional[Decimal] = Field(None, description="固定减免金额")
    upgrade_credit: Optional[Decimal] = Field(None, description="升级抵扣金额")


@router.get("/products/{product_id}", response_model=PriceBreakdown)
async def compute_product_price(
    product_id: str,
    coupon_code: Optional[str] = Query(None, description="兑换码"),
    quantity: int = Query(1, description="购买数量"),
    country: Optional[str] = Query(None, min_length=2, max_length=2, description="国家代码"),
    upgrade_from_purchase_id: Optional[str] = Query(None, description="升级来源购买ID"),
    user_id: Optional[str] = Query(None, description="用户ID"),
    price_service: PriceCalculatorService = Depends(get_price_calculator_service)
):
    """计算商品价格"""
    breakdown = await price_service.compute_price(
        product_id=product_id,
        coupon_code=coupon_code,
        quantity=quantity,
        country_code=country,
        upgrade_from_purchase_id=upgrade_from_purchase_id,
        user_id=user_id
    )
    if breakdown is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="商品不存在")
    return breakdown


@router.post("/quote", response_model=PriceBreakdown)
async def quote_price(request: PriceQuoteRequest):
    """按给定折扣参数计算价格"""
    return calculate_price(
        request.base_price,
        quantity=request.quantity,
        percentage_coupon=request.percentage_discount,
        fixed_discount=request.fixed_discount,
        upgrade_credit=request.upgrade_credit
    )
