# cardapio_app/blueprints/payment.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from flask import Blueprint, request, jsonify, current_app, g
from marshmallow import ValidationError

from ..decorators import tenant_required
from ..errors import PaymentError
from ..extensions import db, limiter
from ..models.plan_order import PAID
from ..schemas import CheckoutSchema
from ..services.plan_orders import get_plan_orders

bp = Blueprint("payment", __name__, url_prefix="/api/payment")

checkout_schema = CheckoutSchema()


def _public_limit():
    return current_app.config.get("PUBLIC_RATE_LIMIT", "200 per 15 minutes")


def _callback_base_url() -> str:
    # PUBLIC_BASE_URL quando a app roda atrás de proxy
    return current_app.config.get("PUBLIC_BASE_URL") or request.host_url


@bp.errorhandler(PaymentError)
def _payment_error(err: PaymentError):
    current_app.logger.error("[Payment] Erro: %s", err.message)
    return jsonify(success=False, error=err.message), err.status_code


@bp.route("/process", methods=["POST"])
@tenant_required
def process():
    """Checkout: cria o pedido e a cobrança (PIX ou boleto) na PagHiper."""
    try:
        payload = checkout_schema.load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return jsonify(success=False, error="Dados inválidos", details=err.messages), 400

    result = get_plan_orders().checkout(g.tenant_id, payload, _callback_base_url())
    return jsonify(
        success=True,
        orderId=result.order.id,
        paymentInstructions=result.payment_instructions.to_dict(),
        message="Cobrança criada com sucesso",
    )


@bp.route("/orders/<order_id>/status")
@limiter.limit(_public_limit)
def order_status(order_id: str):
    """Público (polling do frontend). Se pago e sem assinatura ativa, refaz a ativação."""
    service = get_plan_orders()
    order = service.get_by_id(order_id)
    if not order:
        return jsonify(error="Pedido não encontrado."), 404

    if order.status == PAID:
        try:
            if service.subscription_needs_repair(order):
                current_app.logger.info("[Plan Order Status] Assinatura inativa para pedido pago %s; reativando", order.id)
                order = service.update_status(order.id, PAID, {"paid_at": order.paid_at or service.clock()},
                                              source="status_poll")
        except Exception:
            current_app.logger.exception("[Plan Order Status] Erro ao tentar reativar assinatura do pedido %s", order_id)
            db.session.rollback()
            order = service.get_by_id(order_id) or order

    return jsonify(order.status_dict())


@bp.route("/orders")
@tenant_required
def list_orders():
    page = request.args.get("page", 1, type=int)
    page_size = request.args.get("pageSize", 50, type=int)
    rows, total = get_plan_orders().list(tenant_id=g.tenant_id, page=page, page_size=page_size)
    return jsonify(data=[o.to_dict() for o in rows], total=total, page=page, pageSize=page_size)


@bp.route("/methods")
@tenant_required
def methods():
    return jsonify(methods=[
        {"id": "pix", "name": "PIX", "icon": "pix", "available": True},
        {"id": "boleto", "name": "Boleto Bancário", "icon": "boleto", "available": True},
    ])
