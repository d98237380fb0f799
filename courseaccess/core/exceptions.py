"""
业务异常定义

只有输入错误、真实冲突和存储故障才以异常形式抛出；
查不到数据、无权限读取等情况以 None / False 返回。
"""

from typing import Any, Dict, Optional


class BusinessException(Exception):
    """业务异常基类"""

    status_code: int = 400
    error_code: str = "BUSINESS_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class ValidationFailedError(BusinessException):
    """入参校验失败，不做静默修正"""

    status_code = 422
    error_code = "VALIDATION_FAILED"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, {"field": field} if field else None)


class InvalidPricingInputError(ValidationFailedError):
    """价格计算参数非法(数量小于1、负价格、折扣率越界等)"""

    error_code = "INVALID_PRICING_INPUT"


class UnauthorizedError(BusinessException):
    """写操作缺少所需角色"""

    status_code = 403
    error_code = "UNAUTHORIZED"

    def __init__(self, action: str, subject: str, user_id: Optional[str] = None):
        self.action = action
        self.subject = subject
        self.user_id = user_id
        super().__init__(
            f"用户 {user_id or 'anonymous'} 无权执行 {action} {subject}",
            {"action": action, "subject": subject},
        )


class ResourceTreeError(BusinessException):
    """资源树结构错误"""

    status_code = 500
    error_code = "RESOURCE_TREE_INVALID"


class ResourceCycleError(ResourceTreeError):
    """资源树存在环，构建时直接失败"""

    error_code = "RESOURCE_TREE_CYCLE"

    def __init__(self, path: list):
        self.path = list(path)
        super().__init__(
            f"资源树存在环: {' -> '.join(self.path)}",
            {"path": self.path},
        )


class StoreUnavailableError(BusinessException):
    """存储层暂时不可用，调用方可重试"""

    status_code = 503
    error_code = "STORE_UNAVAILABLE"


class SeatAlreadyRedeemedError(BusinessException):
    """同一用户在同一席位池上重复兑换，由唯一约束拦截"""

    status_code = 409
    error_code = "SEAT_ALREADY_REDEEMED"

    def __init__(self, bulk_coupon_id: str, user_id: str):
        self.bulk_coupon_id = bulk_coupon_id
        self.user_id = user_id
        super().__init__(
            f"用户 {user_id} 已兑换过席位池 {bulk_coupon_id}",
            {"bulk_coupon_id": bulk_coupon_id, "user_id": user_id},
        )
