# cardapio_app/services/plan_orders.py
# -*- coding: utf-8 -*-
"""Ciclo de vida dos pedidos de plano: checkout, status e ativação de assinatura.

O serviço é criado uma vez em ``create_app`` e guardado em
``app.extensions["plan_orders"]``; as rotas usam ``get_plan_orders()``.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..errors import (
    BelowMinimumAmount, InvalidStatusTransition, OrderNotFound, PaymentError,
    SubscriptionActivationFailed,
)
from ..extensions import db
from ..models.plan_order import PlanOrder, PENDING, PAID, FAILED, CANCELLED
from ..models.subscription import TenantSubscription
from ..timeutils import utcnow, parse_processor_date
from . import plan_orders_store as store
from .paghiper import ChargeRequest, Customer, PixInstructions, BoletoInstructions, map_processor_status
from .plan_catalog import PLANS, PIX_MINIMUM_CENTS, PlanInfo, lookup, to_cents

WEBHOOK_PATH = "/api/paghiper/webhook"


@dataclass(frozen=True)
class CheckoutPayload:
    customer_name: str
    customer_email: str
    customer_document: str
    customer_phone: str
    payment_method: str
    plan_type: str


@dataclass(frozen=True)
class CheckoutResult:
    order: PlanOrder
    payment_instructions: PixInstructions | BoletoInstructions


@dataclass(frozen=True)
class ActivationResult:
    ok: bool
    tenant_id: str | None = None
    subscription: TenantSubscription | None = None
    error: SubscriptionActivationFailed | None = None


def _with_tenant_metadata(payload, tenant_id: str | None) -> dict | None:
    """Cópia do payload da PagHiper com o tenantId reinserido (e sem a apiKey)."""
    data = dict(payload) if isinstance(payload, dict) else {}
    data.pop("apiKey", None)
    if tenant_id:
        data["tenantId"] = tenant_id
    return data or None


class PlanOrdersService:
    def __init__(self, gateway, plans: dict[str, PlanInfo] | None = None, clock=utcnow):
        self.gateway = gateway
        self.plans = dict(PLANS if plans is None else plans)
        self.clock = clock

    def get_plan(self, plan_type: str) -> PlanInfo:
        return lookup(plan_type, self.plans)

    # ------------------------------------------------------------------ checkout
    def checkout(self, tenant_id: str, payload: CheckoutPayload, callback_base_url: str) -> CheckoutResult:
        """Cria o pedido e a cobrança na PagHiper.

        Se a cobrança falhar o pedido fica em ``failed`` (auditoria) e o erro
        sobe para o chamador.
        """
        log = current_app.logger
        plan = self.get_plan(payload.plan_type)
        amount_cents = to_cents(plan.price)

        if payload.payment_method == "pix" and amount_cents < PIX_MINIMUM_CENTS:
            raise BelowMinimumAmount()

        order = store.create_order(
            tenant_id=tenant_id,
            plan_type=payload.plan_type,
            customer_name=payload.customer_name,
            customer_email=payload.customer_email,
            customer_document=payload.customer_document,
            customer_phone=payload.customer_phone,
            payment_method=payload.payment_method,
            status=PENDING,
            amount=plan.price,
            validity_days=plan.validity_days,
            processor_response=_with_tenant_metadata(None, tenant_id),
        )
        log.info("[plan-orders] Pedido criado: order=%s plano=%s método=%s cliente=%s tenant=%s",
                 order.id, payload.plan_type, payload.payment_method, payload.customer_email, tenant_id)

        try:
            charge = self.gateway.create_charge(ChargeRequest(
                order_id=order.id,
                plan_name=plan.name,
                amount_cents=amount_cents,
                payment_method=payload.payment_method,
                customer=Customer(
                    name=payload.customer_name,
                    email=payload.customer_email,
                    document=payload.customer_document,
                    phone=payload.customer_phone,
                ),
                notification_url=f"{(callback_base_url or '').rstrip('/')}{WEBHOOK_PATH}" if callback_base_url else "",
                validity_days=plan.validity_days,
            ))
        except Exception:
            log.exception("[plan-orders] Erro ao criar cobrança na PagHiper: order=%s", order.id)
            db.session.rollback()
            try:
                self.update_status(order.id, FAILED, source="checkout")
            except Exception:
                db.session.rollback()
                log.exception("[plan-orders] Não foi possível marcar o pedido %s como failed", order.id)
            raise

        updated = store.update_order(
            order.id,
            processor_order_id=charge.processor_order_id,
            processor_transaction_id=charge.transaction_id,
            processor_response=_with_tenant_metadata(charge.raw, tenant_id),
            due_date=charge.due_date,
        )
        return CheckoutResult(order=updated, payment_instructions=charge.instructions)

    # ------------------------------------------------------------------ status
    def update_status(self, order_id: str, new_status: str, updates: dict | None = None,
                      source: str = "system") -> PlanOrder:
        """Persiste o status e, se ``paid``, ativa/renova a assinatura.

        Idempotente: repetir o mesmo status não cria nova transição e a
        ativação sempre grava datas absolutas (agora + validade).
        """
        order = store.get_order(order_id)
        if not order:
            raise OrderNotFound()
        previous = order.status
        if order.is_terminal and new_status != previous:
            raise InvalidStatusTransition(previous, new_status)

        if new_status != previous:
            store.record_status_change(order, previous, new_status, source)
        updated = store.update_order(order.id, status=new_status, **(updates or {}))

        if new_status == PAID:
            result = self.activate_subscription(updated)
            if not result.ok:
                # falha aqui não pode derrubar o webhook; o polling de status refaz a ativação
                current_app.logger.error("[plan-orders] %s", result.error.message)
        return updated

    def resolve_tenant_id(self, order: PlanOrder) -> str | None:
        """tenantId gravado no processor_response; a coluna do pedido é o fallback."""
        meta_tenant = order.metadata_tenant_id
        if order.tenant_id and meta_tenant and meta_tenant != order.tenant_id:
            current_app.logger.warning("[plan-orders] tenantId do metadata (%s) diverge do pedido %s (%s)",
                                       meta_tenant, order.id, order.tenant_id)
        return meta_tenant or order.tenant_id

    def activate_subscription(self, order: PlanOrder) -> ActivationResult:
        log = current_app.logger
        try:
            tenant_id = self.resolve_tenant_id(order)
            if not tenant_id:
                raise LookupError("TenantId não encontrado")

            start = self.clock()
            end = start + timedelta(days=order.validity_days or 30)
            sub = store.get_subscription(tenant_id)
            if sub is None:
                sub = store.create_subscription(tenant_id, order.plan_type, start, end)
                log.info("[plan-orders] Assinatura criada para tenant %s (até %s)", tenant_id, end)
            else:
                sub = store.update_subscription(
                    sub.id,
                    plan_type=order.plan_type,
                    subscription_start_date=start,
                    subscription_end_date=end,
                    is_active=True,
                    is_trial=False,
                )
                log.info("[plan-orders] Assinatura renovada para tenant %s (até %s)", tenant_id, end)
            return ActivationResult(ok=True, tenant_id=tenant_id, subscription=sub)
        except Exception as exc:
            db.session.rollback()
            log.exception("[plan-orders] Erro ao ativar assinatura do pedido %s", order.id)
            return ActivationResult(ok=False, error=SubscriptionActivationFailed(order.id, exc))

    def subscription_needs_repair(self, order: PlanOrder) -> bool:
        """Pedido pago cuja assinatura não existe, está inativa ou ainda em trial."""
        if order.status != PAID:
            return False
        tenant_id = self.resolve_tenant_id(order)
        sub = store.get_subscription(tenant_id) if tenant_id else None
        return sub is None or not sub.is_active or sub.is_trial

    # ------------------------------------------------------------------ PagHiper
    def apply_processor_status(self, order: PlanOrder, processor_status: str | None, *,
                               paid_date=None, transaction_id: str | None = None,
                               raw: dict | None = None, source: str = "webhook") -> PlanOrder | None:
        """Aplica um status vindo da PagHiper. Retorna None quando nada muda."""
        log = current_app.logger
        next_status = map_processor_status(processor_status)
        if next_status is None:
            log.warning("[plan-orders] Status desconhecido da PagHiper: %r (pedido %s)", processor_status, order.id)
            return None
        if next_status == PENDING or order.is_terminal:
            return None

        updates = {}
        if transaction_id:
            updates["processor_transaction_id"] = transaction_id
        if raw:
            updates["processor_response"] = _with_tenant_metadata(raw, self.resolve_tenant_id(order))
        if next_status == PAID:
            updates["paid_at"] = parse_processor_date(paid_date) or self.clock()
        elif next_status == CANCELLED:
            updates["cancelled_at"] = self.clock()

        log.info("[plan-orders] Atualizando pedido %s: %s -> %s (%s)", order.id, order.status, next_status, source)
        return self.update_status(order.id, next_status, updates, source=source)

    def reconcile_pending(self, limit: int = 100) -> int:
        """Consulta a PagHiper para pedidos pendentes; ausência de status = tentar depois."""
        updated = 0
        for order in store.list_pending_orders(limit):
            result = self.gateway.query_status(order.processor_transaction_id, order.payment_method)
            if result is None:
                continue
            try:
                if self.apply_processor_status(order, result.status, paid_date=result.paid_date,
                                               source="reconcile") is not None:
                    updated += 1
            except PaymentError as exc:
                db.session.rollback()
                current_app.logger.warning("[plan-orders] Reconciliação ignorou pedido %s: %s", order.id, exc.message)
        return updated

    # ------------------------------------------------------------------ leitura
    def get_by_id(self, order_id: str) -> PlanOrder | None:
        return store.get_order(order_id)

    def list(self, tenant_id: str | None = None, page: int = 1, page_size: int = 50):
        return store.list_orders(tenant_id=tenant_id, page=page, page_size=page_size)


def get_plan_orders() -> PlanOrdersService:
    return current_app.extensions["plan_orders"]
