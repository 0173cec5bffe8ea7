from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.db import models

MONEY_QUANT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest amount the 12-digit money columns can hold.
MAX_TOTAL_COST = Decimal("9999999999.99")
MAX_QUANTITY = 10000

DEFAULT_FABRIC_QUALITY = 160
DEFAULT_FABRIC_COSTS = {
    160: Decimal("2500.00"),
    180: Decimal("3000.00"),
    200: Decimal("3500.00"),
    220: Decimal("4000.00"),
}

DEFAULT_SIZE_PRICES = {
    "S": Decimal("0.00"),
    "M": Decimal("500.00"),
    "L": Decimal("1000.00"),
    "XL": Decimal("1500.00"),
    "XXL": Decimal("2000.00"),
}


class FabricPurchaseOption(models.TextChoices):
    HELP_BUY = "help_buy", "Help me buy the fabric"
    ALREADY_HAVE = "already_have", "I already have the fabric"
    HELP_ME_BUY = "help_me_buy", "Help me buy the fabric"


# Both spellings mean the shop sources the blank fabric.
PURCHASE_OPTIONS = frozenset({FabricPurchaseOption.HELP_BUY, FabricPurchaseOption.HELP_ME_BUY})


def requires_fabric_purchase(option):
    return option in PURCHASE_OPTIONS


def to_money(value):
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CostBreakdown:
    technique_cost: Decimal = ZERO
    fabric_cost: Decimal = ZERO
    unit_cost: Decimal = ZERO
    total_cost: Decimal = ZERO
    product_price: Decimal | None = None

    def as_dict(self):
        return {key: str(value) for key, value in asdict(self).items() if value is not None}

    @classmethod
    def from_payload(cls, payload):
        product_price = payload.get("product_price")
        return cls(
            technique_cost=to_money(payload.get("technique_cost")),
            fabric_cost=to_money(payload.get("fabric_cost")),
            unit_cost=to_money(payload.get("unit_cost")),
            total_cost=to_money(payload.get("total_cost")),
            product_price=to_money(product_price) if product_price is not None else None,
        )


def calculate_costs(
    *,
    technique_cost,
    quantity,
    fabric_purchase_option=None,
    fabric_quality=None,
    fabric_costs=None,
    product_price=None,
):
    """Price one customization.

    Personal items pay technique plus fabric per unit, where fabric is only
    charged when the shop buys it. Product-linked items pay the product price
    plus the technique and never carry a fabric cost. With no technique
    selected every field stays at zero.
    """
    if technique_cost is None:
        return CostBreakdown(product_price=to_money(product_price) if product_price is not None else None)

    quantity = int(quantity)
    if quantity < 1:
        raise ValueError("quantity must be at least 1")
    technique_cost = to_money(technique_cost)
    if technique_cost < 0:
        raise ValueError("technique_cost must not be negative")

    if product_price is not None:
        product_price = to_money(product_price)
        unit_cost = product_price + technique_cost
        return CostBreakdown(
            technique_cost=technique_cost,
            fabric_cost=ZERO,
            unit_cost=unit_cost,
            total_cost=to_money(unit_cost * quantity),
            product_price=product_price,
        )

    fabric_cost = ZERO
    if requires_fabric_purchase(fabric_purchase_option):
        table = fabric_costs if fabric_costs is not None else DEFAULT_FABRIC_COSTS
        gsm = int(fabric_quality) if fabric_quality is not None else DEFAULT_FABRIC_QUALITY
        if gsm not in table:
            raise ValueError(f"unknown fabric quality {gsm}")
        fabric_cost = to_money(table[gsm])

    unit_cost = technique_cost + fabric_cost
    return CostBreakdown(
        technique_cost=technique_cost,
        fabric_cost=fabric_cost,
        unit_cost=unit_cost,
        total_cost=to_money(unit_cost * quantity),
    )
