# cardapio_app/schemas.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from marshmallow import EXCLUDE, Schema, fields, validate, post_load

from .models.plan_order import PAYMENT_METHODS, PLAN_TYPES
from .services.plan_orders import CheckoutPayload


class CheckoutSchema(Schema):
    """Corpo do POST /api/payment/process (apenas PIX e boleto)."""

    class Meta:
        unknown = EXCLUDE

    method = fields.Str(required=True, validate=validate.OneOf(PAYMENT_METHODS))
    planType = fields.Str(required=True, validate=validate.OneOf(PLAN_TYPES))
    customerName = fields.Str(required=True, validate=validate.Length(min=1, error="Nome é obrigatório"))
    customerEmail = fields.Email(required=True, error_messages={"invalid": "Email inválido"})
    customerDocument = fields.Str(required=True, validate=validate.Length(min=11, max=18, error="CPF/CNPJ inválido"))
    customerPhone = fields.Str(required=True, validate=validate.Length(min=10, error="Telefone inválido"))

    @post_load
    def to_payload(self, data, **kwargs):
        return CheckoutPayload(
            customer_name=data["customerName"].strip(),
            customer_email=data["customerEmail"],
            customer_document=data["customerDocument"],
            customer_phone=data["customerPhone"],
            payment_method=data["method"],
            plan_type=data["planType"],
        )
