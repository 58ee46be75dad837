# cardapio_app/models/__init__.py
# -*- coding: utf-8 -*-
from .tenant import Tenant
from .plan_order import PlanOrder, PlanOrderStatusHistory
from .subscription import TenantSubscription


__all__ = [
    "Tenant",
    "PlanOrder",
    "PlanOrderStatusHistory",
    "TenantSubscription",
]
