# cardapio_app/models/plan_order.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import uuid
from ..extensions import db
from ..timeutils import utcnow, isoformat

PLAN_TYPES = ("basic", "premium", "enterprise")
PAYMENT_METHODS = ("pix", "boleto")

PENDING = "pending"
PAID = "paid"
FAILED = "failed"
CANCELLED = "cancelled"
EXPIRED = "expired"

ORDER_STATUSES = (PENDING, PAID, FAILED, CANCELLED, EXPIRED)
TERMINAL_STATUSES = frozenset({PAID, FAILED, CANCELLED, EXPIRED})


class PlanOrder(db.Model):
    __tablename__ = "plan_orders"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = db.Column(db.String(36), db.ForeignKey("tenants.id", ondelete="CASCADE"), index=True, nullable=False)
    plan_type = db.Column(db.String(20), nullable=False)        # basic, premium, enterprise

    # snapshot do pagador no momento do pedido
    customer_name = db.Column(db.Text, nullable=False)
    customer_email = db.Column(db.Text, nullable=False)
    customer_document = db.Column(db.Text)
    customer_phone = db.Column(db.Text)

    payment_method = db.Column(db.String(20), nullable=False)   # pix, boleto
    status = db.Column(db.String(20), nullable=False, default=PENDING, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    validity_days = db.Column(db.Integer, nullable=False, default=30)

    # referências da PagHiper
    processor_order_id = db.Column(db.Text)
    processor_transaction_id = db.Column(db.String(120), index=True)
    processor_response = db.Column(db.JSON)   # também carrega {"tenantId": ...}

    due_date = db.Column(db.DateTime)
    paid_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    history = db.relationship(
        "PlanOrderStatusHistory", backref="order", lazy="dynamic",
        order_by="PlanOrderStatusHistory.id",
    )

    __table_args__ = (
        db.CheckConstraint("plan_type IN ('basic', 'premium', 'enterprise')", name="ck_plan_orders_plan_type"),
        db.CheckConstraint("payment_method IN ('pix', 'boleto')", name="ck_plan_orders_payment_method"),
        db.CheckConstraint(
            "status IN ('pending', 'paid', 'cancelled', 'expired', 'failed')", name="ck_plan_orders_status"
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def metadata_tenant_id(self) -> str | None:
        meta = self.processor_response
        if isinstance(meta, dict) and isinstance(meta.get("tenantId"), str) and meta["tenantId"]:
            return meta["tenantId"]
        return None

    def status_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "paidAt": isoformat(self.paid_at),
            "cancelledAt": isoformat(self.cancelled_at),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "planType": self.plan_type,
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "paymentMethod": self.payment_method,
            "status": self.status,
            "amount": f"{self.amount:.2f}" if self.amount is not None else None,
            "validityDays": self.validity_days,
            "processorOrderId": self.processor_order_id,
            "processorTransactionId": self.processor_transaction_id,
            "dueDate": isoformat(self.due_date),
            "paidAt": isoformat(self.paid_at),
            "cancelledAt": isoformat(self.cancelled_at),
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


class PlanOrderStatusHistory(db.Model):
    """Histórico append-only das transições de status de um pedido."""
    __tablename__ = "plan_order_status_history"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(36), db.ForeignKey("plan_orders.id", ondelete="CASCADE"), index=True, nullable=False)
    from_status = db.Column(db.String(20))    # None na criação
    to_status = db.Column(db.String(20), nullable=False)
    source = db.Column(db.String(20), nullable=False, default="system")  # checkout, webhook, status_poll, reconcile
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
