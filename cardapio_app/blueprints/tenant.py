# cardapio_app/blueprints/tenant.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, jsonify, g

from ..decorators import tenant_required
from ..services import plan_orders_store as store

bp = Blueprint("tenant", __name__, url_prefix="/api/tenants")

@bp.route("/me/subscription")
@tenant_required
def my_subscription():
    sub = store.get_subscription(g.tenant_id)
    if not sub:
        # sem assinatura: tratado como trial expirado
        return jsonify(subscription=None, planInfo={
            "isActive": False, "isTrial": False, "planType": "trial",
            "daysRemaining": None, "isExpired": True,
        })
    return jsonify(subscription=sub.to_dict(), planInfo=sub.plan_info())
