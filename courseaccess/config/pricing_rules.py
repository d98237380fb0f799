"""
定价规则静态配置 - 购买力平价(PPP)折扣与团队批量折扣
"""

from decimal import Decimal
from typing import Dict, List, Optional, Tuple

# 按国家的购买力平价折扣率(ISO 3166-1 alpha-2)
PPP_DISCOUNT_BY_COUNTRY: Dict[str, Decimal] = {
    # 75%
    "IN": Decimal("0.75"),
    "PK": Decimal("0.75"),
    "NG": Decimal("0.75"),
    "EG": Decimal("0.75"),
    # 60%
    "BD": Decimal("0.60"),
    "ID": Decimal("0.60"),
    "VN": Decimal("0.60"),
    "UA": Decimal("0.60"),
    "KE": Decimal("0.60"),
    "PH": Decimal("0.60"),
    # 50%
    "BR": Decimal("0.50"),
    "CO": Decimal("0.50"),
    "TR": Decimal("0.50"),
    "AR": Decimal("0.50"),
    "ZA": Decimal("0.50"),
    "MX": Decimal("0.50"),
    # 40%
    "CN": Decimal("0.40"),
    "RU": Decimal("0.40"),
    "MY": Decimal("0.40"),
    "TH": Decimal("0.40"),
    "PL": Decimal("0.40"),
    "CL": Decimal("0.40"),
    # 30%
    "PT": Decimal("0.30"),
    "GR": Decimal("0.30"),
    "HU": Decimal("0.30"),
    "CZ": Decimal("0.30"),
}

# 团队批量折扣阶梯: (最少席位数, 折扣率)，按席位数从高到低匹配
BULK_DISCOUNT_TIERS: List[Tuple[int, Decimal]] = [
    (15, Decimal("0.25")),
    (10, Decimal("0.20")),
    (5, Decimal("0.15")),
]


def get_ppp_discount_percent(country: Optional[str]) -> Decimal:
    """
    获取国家对应的PPP折扣率

    Returns:
        0到1之间的折扣率，未配置的国家返回0
    """
    if not country:
        return Decimal("0")
    return PPP_DISCOUNT_BY_COUNTRY.get(country.upper(), Decimal("0"))


def get_bulk_discount_percent(seat_count: int) -> Decimal:
    """根据席位总数获取批量折扣率"""
    for min_seats, percent in BULK_DISCOUNT_TIERS:
        if seat_count >= min_seats:
            return percent
    return Decimal("0")
