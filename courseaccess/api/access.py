"""
访问权限与权益接口
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from courseaccess.api.dependencies import get_authorization_service, get_entitlement_service
from courseaccess.models.entitlement import Entitlement, RefundResult
from courseaccess.services.authorization_service import AuthorizationService
from courseaccess.services.entitlement_service import EntitlementService

router = APIRouter(prefix="/access", tags=["访问权限"])


@router.get("/resources/{resource_id}")
async def can_read_resource(
    resource_id: str,
    user_id: Optional[str] = Query(None, description="用户ID，为空表示未登录"),
    country: Optional[str] = Query(None, description="访问者国家代码"),
    auth_service: AuthorizationService = Depends(get_authorization_service)
):
    """判断用户能否读取资源"""
    allowed = await auth_service.can_read(user_id, resource_id, country)
    return {"resource_id": resource_id, "user_id": user_id, "can_read": allowed}


@router.get("/rules")
async def get_ability_rules(
    user_id: Optional[str] = Query(None, description="用户ID"),
    resource_id: Optional[str] = Query(None, description="资源ID"),
    country: Optional[str] = Query(None, description="访问者国家代码"),
    auth_service: AuthorizationService = Depends(get_authorization_service)
):
    """获取用户的有序规则列表"""
    rules = await auth_service.get_ability_rules(user_id, resource_id, country)
    return [
        {**rule.model_dump(mode="json"), "conditional": rule.predicate is not None}
        for rule in rules
    ]


@router.get("/users/{user_id}/entitlements", response_model=List[Entitlement])
async def list_user_entitlements(
    user_id: str,
    entitlement_service: EntitlementService = Depends(get_entitlement_service)
):
    """用户当前有效的权益"""
    return await entitlement_service.list_active_for_user(user_id)


@router.post("/purchases/{purchase_id}/grant")
async def grant_purchase_entitlements(
    purchase_id: str,
    entitlement_service: EntitlementService = Depends(get_entitlement_service)
):
    """购买完成后授予权益(可重复调用)"""
    entitlement_ids = await entitlement_service.grant_for_purchase(purchase_id)
    return {"purchase_id": purchase_id, "entitlement_ids": entitlement_ids}


@router.post("/purchases/{purchase_id}/refund", response_model=RefundResult)
async def refund_purchase(
    purchase_id: str,
    entitlement_service: EntitlementService = Depends(get_entitlement_service)
):
    """退款并撤销相关权益"""
    return await entitlement_service.handle_refund(purchase_id)
