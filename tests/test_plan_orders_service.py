# tests/test_plan_orders_service.py
from __future__ import annotations
from datetime import timedelta
from decimal import Decimal

import pytest


def _payload(method="pix", plan="basic"):
    from cardapio_app.services.plan_orders import CheckoutPayload
    return CheckoutPayload(
        customer_name="Maria Souza",
        customer_email="maria@example.com",
        customer_document="123.456.789-09",
        customer_phone="(11) 98765-4321",
        payment_method=method,
        plan_type=plan,
    )


# --------------------------
# checkout
# --------------------------
def test_checkout_basic_pix_creates_pending_order(service, gateway, clock, tenant):
    result = service.checkout(tenant.id, _payload(), "https://app.test/")

    order = result.order
    assert order.status == "pending"
    assert order.amount == Decimal("3.00")
    assert order.plan_type == "basic" and order.payment_method == "pix"
    assert order.due_date == clock.now + timedelta(days=30)
    assert order.processor_transaction_id == "TX-1"
    assert order.processor_response["tenantId"] == tenant.id
    assert order.processor_response["create_request"]["result"] == "success"

    charge = gateway.charges[0]
    assert charge.amount_cents == 300
    assert charge.order_id == order.id
    assert charge.notification_url == "https://app.test/api/paghiper/webhook"
    assert result.payment_instructions.to_dict()["pix"]["pixCode"] == "000201pix"


def test_checkout_premium_boleto(service, gateway, tenant):
    result = service.checkout(tenant.id, _payload("boleto", "premium"), "https://app.test")
    assert gateway.charges[0].validity_days == 30
    assert gateway.charges[0].amount_cents == 14990
    assert result.order.processor_order_id is not None
    assert result.order.due_date is not None
    assert result.payment_instructions.to_dict()["boleto"]["pdfUrl"] is None


def test_checkout_below_pix_minimum_makes_no_call(app, gateway, clock, tenant):
    from cardapio_app.errors import BelowMinimumAmount
    from cardapio_app.models import PlanOrder
    from cardapio_app.services.plan_catalog import PlanInfo
    from cardapio_app.services.plan_orders import PlanOrdersService

    cheap = PlanOrdersService(gateway, plans={"basic": PlanInfo("basic", "Barato", Decimal("2.50"))}, clock=clock)
    with pytest.raises(BelowMinimumAmount):
        cheap.checkout(tenant.id, _payload(), "https://app.test")
    assert gateway.charges == []
    assert PlanOrder.query.count() == 0


def test_checkout_unknown_plan(service, gateway, tenant):
    from cardapio_app.errors import UnknownPlan
    with pytest.raises(UnknownPlan):
        service.checkout(tenant.id, _payload(plan="gold"), "https://app.test")
    assert gateway.charges == []


def test_checkout_charge_failure_marks_order_failed(service, gateway, tenant):
    from cardapio_app.errors import ChargeCreationFailed
    from cardapio_app.models import PlanOrder
    gateway.fail_with = ChargeCreationFailed("payer_email inválido")

    with pytest.raises(ChargeCreationFailed):
        service.checkout(tenant.id, _payload(), "https://app.test")

    order = PlanOrder.query.one()
    assert order.status == "failed"
    assert [(h.from_status, h.to_status, h.source) for h in order.history] == [
        (None, "pending", "checkout"), ("pending", "failed", "checkout"),
    ]


# --------------------------
# update_status / ativação
# --------------------------
def test_paid_is_idempotent_and_uses_last_call(service, clock, trial_tenant, make_order):
    from cardapio_app.models import TenantSubscription
    order = make_order(trial_tenant.id, plan_type="premium", validity_days=30)

    for _ in range(3):
        clock.advance(hours=1)
        service.update_status(order.id, "paid", {"paid_at": clock.now})

    subs = TenantSubscription.query.filter_by(tenant_id=trial_tenant.id).all()
    assert len(subs) == 1
    sub = subs[0]
    assert sub.subscription_end_date == clock.now + timedelta(days=30)
    assert sub.subscription_start_date == clock.now
    assert sub.plan_type == "premium"
    assert sub.is_active is True and sub.is_trial is False
    # uma única transição pending -> paid no histórico
    assert [h.to_status for h in order.history] == ["pending", "paid"]


def test_paid_creates_subscription_when_missing(service, clock, tenant, make_order):
    from cardapio_app.services import plan_orders_store as store
    order = make_order(tenant.id, plan_type="enterprise", validity_days=30)

    service.update_status(order.id, "paid", {"paid_at": clock.now})

    sub = store.get_subscription(tenant.id)
    assert sub.plan_type == "enterprise"
    assert sub.subscription_end_date == clock.now + timedelta(days=30)
    assert sub.trial_start_date == tenant.created_at
    assert sub.is_trial is False


def test_renewal_overwrites_previous_paid_period(service, clock, trial_tenant, make_order):
    from cardapio_app.services import plan_orders_store as store
    first = make_order(trial_tenant.id, plan_type="basic")
    service.update_status(first.id, "paid")
    clock.advance(days=29)
    second = make_order(trial_tenant.id, plan_type="premium")
    service.update_status(second.id, "paid")

    sub = store.get_subscription(trial_tenant.id)
    assert sub.plan_type == "premium"
    assert sub.subscription_end_date == clock.now + timedelta(days=30)


def test_terminal_status_cannot_change(service, tenant, make_order):
    from cardapio_app.errors import InvalidStatusTransition
    order = make_order(tenant.id, status="cancelled")
    with pytest.raises(InvalidStatusTransition):
        service.update_status(order.id, "paid")


def test_update_status_unknown_order(service):
    from cardapio_app.errors import OrderNotFound
    with pytest.raises(OrderNotFound):
        service.update_status("nope", "paid")


def test_activation_failure_is_swallowed(service, make_order):
    from cardapio_app.models import TenantSubscription
    # tenant inexistente: create_subscription falha com TenantNotFound
    order = make_order("ghost-tenant")

    updated = service.update_status(order.id, "paid")

    assert updated.status == "paid"
    assert TenantSubscription.query.count() == 0


def test_activation_result_carries_error(service, make_order):
    from cardapio_app.errors import SubscriptionActivationFailed
    order = make_order("ghost-tenant")
    result = service.activate_subscription(order)
    assert result.ok is False
    assert isinstance(result.error, SubscriptionActivationFailed)


def test_tenant_id_prefers_processor_metadata(service, tenant, make_order, caplog):
    order = make_order(tenant.id, processor_response={"tenantId": "from-metadata"})
    assert service.resolve_tenant_id(order) == "from-metadata"
    assert "diverge" in caplog.text


def test_tenant_id_falls_back_to_order_column(service, tenant, make_order):
    order = make_order(tenant.id, processor_response={"create_request": {"result": "success"}})
    assert service.resolve_tenant_id(order) == tenant.id
    order = make_order(tenant.id, processor_response=None)
    assert service.resolve_tenant_id(order) == tenant.id


def test_activation_goes_to_metadata_tenant(service, db_session, tenant, make_order):
    from cardapio_app.models import Tenant
    from cardapio_app.services import plan_orders_store as store
    other = Tenant(name="Pizzaria Centro", slug="pizzaria-centro")
    db_session.add(other); db_session.commit()
    order = make_order(tenant.id, processor_response={"tenantId": other.id})

    result = service.activate_subscription(order)

    assert result.ok is True and result.tenant_id == other.id
    assert store.get_subscription(other.id) is not None
    assert store.get_subscription(tenant.id) is None


def test_checkout_failure_keeps_charge_error_when_failed_write_breaks(service, gateway, monkeypatch, tenant):
    from cardapio_app.errors import ChargeCreationFailed
    from cardapio_app.models import PlanOrder
    gateway.fail_with = ChargeCreationFailed("PagHiper fora do ar")

    def broken_update(*args, **kwargs):
        raise RuntimeError("db caiu")

    monkeypatch.setattr(service, "update_status", broken_update)
    with pytest.raises(ChargeCreationFailed) as exc:
        service.checkout(tenant.id, _payload(), "https://app.test")
    assert exc.value.message == "PagHiper fora do ar"
    assert PlanOrder.query.one().status == "pending"


@pytest.mark.parametrize("value,expected", [
    ("2026-02-28 15:30:00", (2026, 2, 28, 18, 30)),    # Brasília, sem offset
    ("2026-02-28T15:30:00Z", (2026, 2, 28, 15, 30)),
    ("2026-02-28T15:30:00-03:00", (2026, 2, 28, 18, 30)),
    (1772292600, (2026, 2, 28, 15, 30)),
])
def test_parse_processor_date(value, expected):
    from datetime import datetime
    from cardapio_app.timeutils import parse_processor_date
    assert parse_processor_date(value) == datetime(*expected)


def test_parse_processor_date_invalid():
    from cardapio_app.timeutils import parse_processor_date
    assert parse_processor_date("ontem") is None
    assert parse_processor_date("") is None


def test_subscription_needs_repair(service, trial_tenant, make_order):
    order = make_order(trial_tenant.id, status="paid")
    # ainda em trial: a ativação nunca rodou
    assert service.subscription_needs_repair(order) is True
    service.activate_subscription(order)
    assert service.subscription_needs_repair(order) is False
    assert service.subscription_needs_repair(make_order(trial_tenant.id)) is False


# --------------------------
# status vindo da PagHiper
# --------------------------
def test_apply_processor_status_cancelled(service, clock, tenant, make_order):
    order = make_order(tenant.id)
    updated = service.apply_processor_status(order, "refunded", raw={"apiKey": "secret", "notification_id": "N1"})
    assert updated.status == "cancelled"
    assert updated.cancelled_at == clock.now
    assert updated.processor_response == {"notification_id": "N1", "tenantId": tenant.id}


def test_apply_processor_status_paid_uses_processor_date(service, tenant, make_order):
    from datetime import datetime
    order = make_order(tenant.id)
    # horário de Brasília (UTC-3) gravado em UTC
    updated = service.apply_processor_status(order, "completed", paid_date="2026-02-28 15:30:00")
    assert updated.status == "paid"
    assert updated.paid_at == datetime(2026, 2, 28, 18, 30, 0)


@pytest.mark.parametrize("status", ["pending", "waiting_payment", "something-new", None])
def test_apply_processor_status_ignores_non_terminal(service, tenant, make_order, status):
    order = make_order(tenant.id)
    assert service.apply_processor_status(order, status) is None
    assert order.status == "pending"


def test_reconcile_pending(service, gateway, tenant, make_order):
    from cardapio_app.services.paghiper import StatusResult
    from cardapio_app.services import plan_orders_store as store
    paid = make_order(tenant.id, payment_method="pix")
    make_order(tenant.id, processor_transaction_id=None)  # sem transação: não consultado

    gateway.status_result = StatusResult("paid", "2026-02-28 10:00:00")
    assert service.reconcile_pending() == 1
    assert gateway.status_calls == [(paid.processor_transaction_id, "pix")]
    assert store.get_order(paid.id).status == "paid"
    assert store.get_subscription(tenant.id) is not None


def test_reconcile_with_unknown_status_changes_nothing(service, gateway, tenant, make_order):
    order = make_order(tenant.id)
    gateway.status_result = None
    assert service.reconcile_pending() == 0
    assert order.status == "pending"


# --------------------------
# invariantes do store
# --------------------------
def test_store_refuses_immutable_fields(app, tenant, make_order):
    from cardapio_app.services import plan_orders_store as store
    order = make_order(tenant.id)
    with pytest.raises(ValueError):
        store.update_order(order.id, amount=Decimal("1.00"))
    with pytest.raises(ValueError):
        store.update_order(order.id, payment_method="pix")


def test_store_never_clears_processor_ids(app, tenant, make_order):
    from cardapio_app.services import plan_orders_store as store
    order = make_order(tenant.id, processor_transaction_id="TX-KEEP", processor_order_id="PO-KEEP")
    store.update_order(order.id, processor_transaction_id=None, processor_order_id=None)
    assert order.processor_transaction_id == "TX-KEEP"
    assert order.processor_order_id == "PO-KEEP"


def test_list_orders_is_tenant_scoped(app, tenant, make_order):
    from cardapio_app.services import plan_orders_store as store
    make_order(tenant.id)
    make_order(tenant.id)
    make_order("other-tenant")
    rows, total = store.list_orders(tenant_id=tenant.id, page=1, page_size=1)
    assert total == 2 and len(rows) == 1
