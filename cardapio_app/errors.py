# cardapio_app/errors.py
# -*- coding: utf-8 -*-
"""Erros do ciclo de vida de pedidos de plano.

Cada erro carrega o status HTTP usado pelos blueprints ao respondê-lo.
"""
from __future__ import annotations


class PaymentError(Exception):
    status_code = 500
    default_message = "Erro ao processar pedido"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnknownPlan(PaymentError):
    status_code = 400

    def __init__(self, plan_type):
        self.plan_type = plan_type
        super().__init__(f"Plano {plan_type} não encontrado")


class BelowMinimumAmount(PaymentError):
    status_code = 400
    default_message = "Valor mínimo para PIX é R$ 3,00"


class ChargeCreationFailed(PaymentError):
    status_code = 502
    default_message = "Erro ao criar cobrança"


class GatewayNotConfigured(ChargeCreationFailed):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Variável de ambiente {key} não configurada")


class OrderNotFound(PaymentError):
    status_code = 404
    default_message = "Pedido não encontrado."


class InvalidStatusTransition(PaymentError):
    status_code = 409

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Pedido já está em '{current}'; não pode ir para '{requested}'")


class TenantNotFound(PaymentError):
    status_code = 404
    default_message = "Tenant not found"


class SubscriptionActivationFailed(PaymentError):
    """Nunca chega ao cliente: só é registrada em log."""

    def __init__(self, order_id: str, cause: Exception | None = None):
        self.order_id = order_id
        self.cause = cause
        super().__init__(f"Falha ao ativar assinatura do pedido {order_id}: {cause}")
