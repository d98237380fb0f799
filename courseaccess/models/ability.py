"""
权限规则模型

一条规则由 (effect, actions, subject, predicate) 组成，规则列表按声明顺序
求值，第一条匹配的规则决定结果。
"""

from typing import Any, Callable, Iterable, List, Optional, Tuple, Union
from pydantic import BaseModel, Field, ConfigDict
from enum import Enum


class Action(str, Enum):
    """操作枚举"""
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"  # 通配所有操作
    SAVE = "save"
    PUBLISH = "publish"
    ARCHIVE = "archive"
    UNPUBLISH = "unpublish"
    INVITE = "invite"
    TRANSFER = "transfer"


class Effect(str, Enum):
    """规则效果"""
    CAN = "can"
    CANNOT = "cannot"


class Subject(str, Enum):
    """规则作用对象"""
    ALL = "all"  # 通配所有对象
    CONTENT = "Content"
    USER = "User"
    TEAM = "Team"
    INVOICE = "Invoice"
    ENTITLEMENT = "Entitlement"
    REGION_RESTRICTION = "RegionRestriction"
    PENDING_OPEN_ACCESS = "PendingOpenAccess"


# 谓词: 接收被检查对象(资源ID或对象属性)返回是否匹配
Predicate = Callable[[Any], bool]


class Rule(BaseModel):
    """权限规则"""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    effect: Effect = Field(..., description="允许或禁止")
    actions: Tuple[Action, ...] = Field(..., description="适用操作")
    subject: Subject = Field(..., description="适用对象")
    predicate: Optional[Predicate] = Field(None, exclude=True, description="对象条件，None表示对该类全部对象生效")
    reason: str = Field(default="", description="规则来源，便于审计")

    def matches(self, action: Action, subject: Subject, target: Any = None) -> bool:
        """规则是否适用于 (action, subject, target)"""
        if Action.MANAGE not in self.actions and action not in self.actions:
            return False
        if self.subject != Subject.ALL and self.subject != subject:
            return False
        if self.predicate is None:
            return True
        if target is None:
            return False
        return bool(self.predicate(target))


def can(
    actions: Union[Action, Iterable[Action]],
    subject: Subject,
    predicate: Optional[Predicate] = None,
    reason: str = "",
) -> Rule:
    """构建允许规则"""
    return Rule(effect=Effect.CAN, actions=_as_tuple(actions), subject=subject, predicate=predicate, reason=reason)


def cannot(
    actions: Union[Action, Iterable[Action]],
    subject: Subject,
    predicate: Optional[Predicate] = None,
    reason: str = "",
) -> Rule:
    """构建禁止规则"""
    return Rule(effect=Effect.CANNOT, actions=_as_tuple(actions), subject=subject, predicate=predicate, reason=reason)


def _as_tuple(actions: Union[Action, Iterable[Action]]) -> Tuple[Action, ...]:
    if isinstance(actions, Action):
        return (actions,)
    return tuple(actions)


class Ability:
    """已编译的规则集合"""

    def __init__(self, rules: List[Rule]):
        self.rules = list(rules)

    def relevant_rule_for(self, action: Action, subject: Subject, target: Any = None) -> Optional[Rule]:
        """返回第一条匹配的规则"""
        for rule in self.rules:
            if rule.matches(action, subject, target):
                return rule
        return None

    def can(self, action: Action, subject: Subject, target: Any = None) -> bool:
        rule = self.relevant_rule_for(action, subject, target)
        return rule is not None and rule.effect == Effect.CAN

    def cannot(self, action: Action, subject: Subject, target: Any = None) -> bool:
        return not self.can(action, subject, target)
