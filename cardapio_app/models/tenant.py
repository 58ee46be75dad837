# cardapio_app/models/tenant.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import uuid
from ..extensions import db
from ..timeutils import utcnow

class Tenant(db.Model):
    """Conta isolada do SaaS. Mantida por outros módulos; aqui só lemos."""
    __tablename__ = "tenants"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(120), unique=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
