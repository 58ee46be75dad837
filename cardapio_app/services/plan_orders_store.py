# cardapio_app/services/plan_orders_store.py
# -*- coding: utf-8 -*-
"""Persistência de pedidos de plano e assinaturas de tenant."""
from __future__ import annotations
from datetime import timedelta

from ..extensions import db
from ..errors import OrderNotFound, TenantNotFound
from ..models import Tenant, PlanOrder, PlanOrderStatusHistory, TenantSubscription
from ..models.subscription import TRIAL_DAYS
from ..timeutils import utcnow

# definidos na criação e nunca mais alterados
IMMUTABLE_ORDER_FIELDS = frozenset({"tenant_id", "plan_type", "payment_method", "amount"})
# uma vez preenchidos, nunca são limpos
STICKY_ORDER_FIELDS = frozenset({"processor_order_id", "processor_transaction_id"})
UPDATABLE_ORDER_FIELDS = frozenset({
    "status", "processor_order_id", "processor_transaction_id", "processor_response",
    "due_date", "paid_at", "cancelled_at",
})


def get_tenant(tenant_id: str) -> Tenant | None:
    if not tenant_id:
        return None
    return db.session.get(Tenant, tenant_id)


# ---------------- pedidos ----------------
def create_order(source: str = "checkout", **data) -> PlanOrder:
    order = PlanOrder(**data)
    db.session.add(order)
    db.session.flush()
    db.session.add(PlanOrderStatusHistory(order_id=order.id, from_status=None, to_status=order.status, source=source))
    db.session.commit()
    return order


def get_order(order_id: str) -> PlanOrder | None:
    if not order_id:
        return None
    return db.session.get(PlanOrder, str(order_id))


def update_order(order_id: str, **updates) -> PlanOrder:
    order = get_order(order_id)
    if not order:
        raise OrderNotFound()
    blocked = IMMUTABLE_ORDER_FIELDS.intersection(updates)
    if blocked:
        raise ValueError(f"Campos imutáveis do pedido: {', '.join(sorted(blocked))}")
    unknown = set(updates) - UPDATABLE_ORDER_FIELDS
    if unknown:
        raise ValueError(f"Campos desconhecidos: {', '.join(sorted(unknown))}")
    for key, value in updates.items():
        if key in STICKY_ORDER_FIELDS and value is None:
            continue
        setattr(order, key, value)
    db.session.add(order)
    db.session.commit()
    return order


def record_status_change(order: PlanOrder, from_status: str | None, to_status: str, source: str) -> None:
    db.session.add(PlanOrderStatusHistory(order_id=order.id, from_status=from_status,
                                          to_status=to_status, source=source))


def list_orders(tenant_id: str | None = None, page: int = 1, page_size: int = 50,
                status: str | None = None) -> tuple[list[PlanOrder], int]:
    page = max(1, int(page or 1))
    page_size = max(1, min(int(page_size or 50), 200))
    q = PlanOrder.query
    if tenant_id:
        q = q.filter_by(tenant_id=tenant_id)
    if status:
        q = q.filter_by(status=status)
    total = q.count()
    rows = q.order_by(PlanOrder.created_at.desc()).offset((page - 1) * page_size).limit(page_size).all()
    return rows, total


def find_order_by_transaction(transaction_id: str) -> PlanOrder | None:
    if not transaction_id:
        return None
    return PlanOrder.query.filter_by(processor_transaction_id=str(transaction_id)).first()


def find_order_by_processor_reference(transaction_id: str | None, order_id: str | None) -> PlanOrder | None:
    """Procura pela transação da PagHiper; o order_id enviado na cobrança é o nosso id."""
    order = find_order_by_transaction(transaction_id)
    if order is None and order_id:
        order = get_order(order_id)
    return order


def list_pending_orders(limit: int = 100) -> list[PlanOrder]:
    return (PlanOrder.query
            .filter(PlanOrder.status == "pending", PlanOrder.processor_transaction_id.isnot(None))
            .order_by(PlanOrder.created_at.asc())
            .limit(limit).all())


# ---------------- assinaturas ----------------
def get_subscription(tenant_id: str) -> TenantSubscription | None:
    return (TenantSubscription.query
            .filter_by(tenant_id=tenant_id)
            .order_by(TenantSubscription.id.asc())
            .first())


def start_trial(tenant_id: str) -> TenantSubscription:
    """Assinatura criada no cadastro do tenant: trial de 7 dias."""
    tenant = get_tenant(tenant_id)
    if not tenant:
        raise TenantNotFound()
    start = tenant.created_at or utcnow()
    sub = TenantSubscription(
        tenant_id=tenant_id, plan_type="trial",
        trial_start_date=start, trial_end_date=start + timedelta(days=TRIAL_DAYS),
        is_active=True, is_trial=True,
    )
    db.session.add(sub)
    db.session.commit()
    return sub


def create_subscription(tenant_id: str, plan_type: str, start_date, end_date) -> TenantSubscription:
    tenant = get_tenant(tenant_id)
    if not tenant:
        raise TenantNotFound()
    trial_start = tenant.created_at or start_date
    sub = TenantSubscription(
        tenant_id=tenant_id, plan_type=plan_type,
        trial_start_date=trial_start, trial_end_date=trial_start + timedelta(days=TRIAL_DAYS),
        subscription_start_date=start_date, subscription_end_date=end_date,
        is_active=True, is_trial=False,
    )
    db.session.add(sub)
    db.session.commit()
    return sub


def update_subscription(subscription_id: int, **updates) -> TenantSubscription:
    sub = db.session.get(TenantSubscription, subscription_id)
    if not sub:
        raise LookupError(f"Assinatura {subscription_id} não encontrada")
    allowed = {"plan_type", "subscription_start_date", "subscription_end_date", "is_active", "is_trial"}
    if not updates or set(updates) - allowed:
        raise ValueError("Nenhum campo válido para atualizar")
    for key, value in updates.items():
        setattr(sub, key, value)
    db.session.add(sub)
    db.session.commit()
    return sub
