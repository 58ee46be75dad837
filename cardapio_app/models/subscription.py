# cardapio_app/models/subscription.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import math
from datetime import datetime
from ..extensions import db
from ..timeutils import utcnow, isoformat

TRIAL_DAYS = 7

class TenantSubscription(db.Model):
    __tablename__ = "tenant_subscriptions"

    id = db.Column(db.Integer, primary_key=True)
    # 1:1 por regra de negócio, sem UNIQUE (ver DESIGN.md)
    tenant_id = db.Column(db.String(36), db.ForeignKey("tenants.id", ondelete="CASCADE"), index=True, nullable=False)
    plan_type = db.Column(db.String(20), nullable=False, default="trial")  # trial, basic, premium, enterprise

    trial_start_date = db.Column(db.DateTime)
    trial_end_date = db.Column(db.DateTime)      # usados só enquanto is_trial
    subscription_start_date = db.Column(db.DateTime)
    subscription_end_date = db.Column(db.DateTime)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_trial = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def is_current(self, now: datetime | None = None) -> bool:
        """Trial dentro do período ou assinatura paga ainda não vencida."""
        now = now or utcnow()
        if self.is_trial:
            return bool(self.trial_end_date and now < self.trial_end_date)
        if self.subscription_end_date:
            return now < self.subscription_end_date
        return bool(self.is_active)

    def trial_days_remaining(self, now: datetime | None = None) -> int:
        if not self.is_trial or not self.trial_end_date:
            return 0
        now = now or utcnow()
        if now >= self.trial_end_date:
            return 0
        return math.ceil((self.trial_end_date - now).total_seconds() / 86400)

    def plan_info(self, now: datetime | None = None) -> dict:
        active = self.is_current(now)
        return {
            "isActive": active,
            "isTrial": bool(self.is_trial),
            "planType": self.plan_type or "trial",
            "daysRemaining": self.trial_days_remaining(now) if self.is_trial else None,
            "isExpired": not active,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "planType": self.plan_type,
            "trialStartDate": isoformat(self.trial_start_date),
            "trialEndDate": isoformat(self.trial_end_date),
            "subscriptionStartDate": isoformat(self.subscription_start_date),
            "subscriptionEndDate": isoformat(self.subscription_end_date),
            "isActive": bool(self.is_active),
            "isTrial": bool(self.is_trial),
        }
