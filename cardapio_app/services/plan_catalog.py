# cardapio_app/services/plan_catalog.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from ..errors import UnknownPlan

DEFAULT_VALIDITY_DAYS = 30
PIX_MINIMUM_CENTS = 300  # R$ 3,00


@dataclass(frozen=True)
class PlanInfo:
    id: str
    name: str
    price: Decimal
    validity_days: int = DEFAULT_VALIDITY_DAYS

    @property
    def price_cents(self) -> int:
        return to_cents(self.price)


PLANS: dict[str, PlanInfo] = {
    "basic": PlanInfo("basic", "Plano Completo", Decimal("3.00")),  # mínimo do PIX
    "premium": PlanInfo("premium", "Plano Premium", Decimal("149.90")),
    "enterprise": PlanInfo("enterprise", "Plano Enterprise", Decimal("299.90")),
}


def to_cents(value: Decimal) -> int:
    return int((Decimal(value) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def lookup(plan_type: str, plans: dict[str, PlanInfo] | None = None) -> PlanInfo:
    plan = (PLANS if plans is None else plans).get(plan_type)
    if not plan:
        raise UnknownPlan(plan_type)
    return plan
