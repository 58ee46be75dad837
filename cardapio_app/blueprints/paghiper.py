# cardapio_app/blueprints/paghiper.py
# -*- coding: utf-8 -*-
"""Webhook da PagHiper (notificações de status de pagamento)."""
from __future__ import annotations
import hmac
from dataclasses import dataclass
from flask import Blueprint, request, jsonify, current_app

from ..errors import InvalidStatusTransition
from ..extensions import db, limiter
from ..services import plan_orders_store as store
from ..services.plan_orders import get_plan_orders

bp = Blueprint("paghiper", __name__, url_prefix="/api/paghiper")

_TRANSACTION_KEYS = ("transaction_id", "transactionId", "transaction", "transaction_code", "code")
_ORDER_KEYS = ("order_id", "orderId", "order", "order_id_custom")
_STATUS_KEYS = ("status", "status_pagamento", "status_transaction", "transaction_status", "status_situacao")
_PAID_DATE_KEYS = ("paid_date", "payment_date", "data_pagamento", "status_date")


@dataclass(frozen=True)
class Notification:
    transaction_id: str | None
    order_id: str | None
    status: str | None
    paid_date: str | None


def _first(data: dict, keys) -> str | None:
    for key in keys:
        value = data.get(key)
        if value not in (None, "") and not isinstance(value, (dict, list)):
            return str(value)
    return None


def parse_notification(raw: dict) -> Notification | None:
    """Boleto chega com campos planos; PIX pode vir aninhado em status_request."""
    flat = dict(raw)
    nested = raw.get("status_request")
    if isinstance(nested, dict):
        flat = {**nested, **{k: v for k, v in raw.items() if k != "status_request"}}
    note = Notification(
        transaction_id=_first(flat, _TRANSACTION_KEYS),
        order_id=_first(flat, _ORDER_KEYS),
        status=_first(flat, _STATUS_KEYS),
        paid_date=_first(flat, _PAID_DATE_KEYS),
    )
    if not note.transaction_id and not note.order_id:
        return None
    return note


def _read_body() -> dict | None:
    data = request.get_json(silent=True)
    if data is None and request.form:
        data = request.form.to_dict()
    return data if isinstance(data, dict) and data else None


def _mask(value) -> str:
    return f"{str(value)[:6]}..." if value else "não fornecido"


def _public_limit():
    return current_app.config.get("PUBLIC_RATE_LIMIT", "200 per 15 minutes")


@bp.route("/webhook", methods=["POST"])
@limiter.limit(_public_limit)
def webhook():
    log = current_app.logger
    raw = _read_body()
    if raw is None:
        log.error("[PagHiper Webhook] Payload inválido: %r", request.get_data(as_text=True)[:500])
        return jsonify(error="Payload inválido"), 400

    # a PagHiper envia a apiKey no corpo como autenticação
    expected = current_app.config.get("PAGHIPER_API_KEY")
    provided = raw.get("apiKey")
    if expected:
        if not isinstance(provided, str) or not hmac.compare_digest(provided.encode(), expected.encode()):
            log.error("[PagHiper Webhook] API Key inválida ou ausente (%s)", _mask(provided))
            return jsonify(error="API Key inválida."), 403
    else:
        log.warning("[PagHiper Webhook] PAGHIPER_API_KEY não configurado - aceitando webhook sem validação")

    note = parse_notification(raw)
    if note is None:
        log.error("[PagHiper Webhook] Notificação sem transaction_id/order_id: %s", sorted(raw))
        return jsonify(error="transaction_id obrigatório"), 400

    try:
        order = store.find_order_by_processor_reference(note.transaction_id, note.order_id)
        if not order:
            log.error("[PagHiper Webhook] Pedido não encontrado: transaction=%s order=%s",
                      note.transaction_id, note.order_id)
            return jsonify(error="Pedido não encontrado"), 404

        if order.is_terminal:
            log.info("[PagHiper Webhook] Pedido %s já está '%s'. Webhook ignorado.", order.id, order.status)
            return jsonify(status="ok", message=f"Pedido já está {order.status}. Webhook ignorado.")

        service = get_plan_orders()
        # só atualiza com confirmação explícita da API; o status da notificação não é confiável
        result = None
        transaction_id = note.transaction_id or order.processor_transaction_id
        if transaction_id:
            result = service.gateway.query_status(transaction_id, order.payment_method)
        if result is None or not result.status:
            log.info("[PagHiper Webhook] Status não confirmado pela API para pedido %s (notificação: %s); "
                     "nada atualizado", order.id, note.status)
            return jsonify(status="ok", message="Webhook recebido mas status não atualizado")
        status, paid_date = result.status, result.paid_date or note.paid_date

        try:
            updated = service.apply_processor_status(
                order, status, paid_date=paid_date, transaction_id=note.transaction_id,
                raw=raw, source="webhook",
            )
        except InvalidStatusTransition as exc:
            # outra entrega (ou o polling) chegou antes
            db.session.rollback()
            log.info("[PagHiper Webhook] %s", exc.message)
            return jsonify(status="ok", message="Pedido já atualizado")

        if updated is None:
            return jsonify(status="ok", message="Webhook recebido mas status não atualizado")

        log.info("[paghiper] webhook processado: order=%s status=%s transaction=%s",
                 updated.id, updated.status, note.transaction_id)
        return jsonify(status="ok")
    except Exception as exc:
        db.session.rollback()
        log.exception("[PagHiper Webhook] Erro ao processar webhook")
        return jsonify(success=False, error=str(exc) or "Erro ao processar webhook"), 500
