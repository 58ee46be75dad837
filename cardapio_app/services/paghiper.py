# cardapio_app/services/paghiper.py
# -*- coding: utf-8 -*-
"""Cliente da API PagHiper (PIX e boleto).

Documentação: https://dev.paghiper.com/reference/
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Union

import requests
from flask import current_app

from ..errors import BelowMinimumAmount, ChargeCreationFailed, GatewayNotConfigured
from ..models.plan_order import PAID, FAILED, CANCELLED, EXPIRED, PENDING
from ..timeutils import utcnow
from .plan_catalog import DEFAULT_VALIDITY_DAYS, PIX_MINIMUM_CENTS

PAID_STATUSES = ("paid", "completed", "settled")

# vocabulário da PagHiper -> status interno
_STATUS_MAP = {
    "paid": PAID,
    "completed": PAID,
    "settled": PAID,
    "cancelled": CANCELLED,
    "canceled": CANCELLED,
    "refunded": CANCELLED,
    "expired": EXPIRED,
    "failed": FAILED,
    "chargeback": FAILED,
    "pending": PENDING,
    "waiting_payment": PENDING,
}

# a PagHiper muda o campo da data de pagamento conforme o fluxo do boleto
_BOLETO_PAID_DATE_FIELDS = ("date_payment_approved", "date_payment", "data_pagamento", "paid_date")


def map_processor_status(status) -> str | None:
    if not status:
        return None
    return _STATUS_MAP.get(str(status).strip().lower())


def only_digits(value) -> str:
    return re.sub(r"\D", "", str(value or ""))


@dataclass(frozen=True)
class Customer:
    name: str
    email: str
    document: str
    phone: str


@dataclass(frozen=True)
class ChargeRequest:
    order_id: str
    plan_name: str
    amount_cents: int
    payment_method: str  # 'pix' | 'boleto'
    customer: Customer
    notification_url: str = ""
    validity_days: int = DEFAULT_VALIDITY_DAYS


@dataclass(frozen=True)
class PixInstructions:
    qrcode_image: str | None
    pix_code: str | None

    def to_dict(self) -> dict:
        return {"pix": {"qrcodeImage": self.qrcode_image, "pixCode": self.pix_code}}


@dataclass(frozen=True)
class BoletoInstructions:
    digitable_line: str | None
    url: str | None
    pdf_url: str | None

    def to_dict(self) -> dict:
        return {"boleto": {"digitableLine": self.digitable_line, "url": self.url, "pdfUrl": self.pdf_url}}


@dataclass(frozen=True)
class PixChargeResult:
    transaction_id: str | None
    processor_order_id: str | None
    due_date: datetime
    instructions: PixInstructions
    raw: dict = field(default_factory=dict)
    payment_method = "pix"


@dataclass(frozen=True)
class BoletoChargeResult:
    transaction_id: str | None
    processor_order_id: str | None
    due_date: datetime
    instructions: BoletoInstructions
    raw: dict = field(default_factory=dict)
    payment_method = "boleto"


ChargeResult = Union[PixChargeResult, BoletoChargeResult]


@dataclass(frozen=True)
class StatusResult:
    status: str
    paid_date: str | None = None


class PagHiperClient:
    def __init__(self, api_key: str, token: str, *, pix_base_url: str = "https://pix.paghiper.com",
                 api_base_url: str = "https://api.paghiper.com", notification_url: str = "",
                 timeout: float | None = None, clock=utcnow):
        self.api_key = api_key
        self.token = token
        self.pix_base_url = pix_base_url.rstrip("/")
        self.api_base_url = api_base_url.rstrip("/")
        self.notification_url = notification_url
        self.timeout = timeout
        self.clock = clock

    @classmethod
    def from_config(cls, config) -> "PagHiperClient":
        return cls(
            config.get("PAGHIPER_API_KEY", ""),
            config.get("PAGHIPER_TOKEN", ""),
            pix_base_url=config.get("PAGHIPER_PIX_BASE_URL") or "https://pix.paghiper.com",
            api_base_url=config.get("PAGHIPER_API_BASE_URL") or "https://api.paghiper.com",
            notification_url=config.get("PAGHIPER_NOTIFICATION_URL", ""),
            timeout=config.get("PAGHIPER_TIMEOUT"),
        )

    def _credentials(self) -> tuple[str, str]:
        if not self.api_key:
            raise GatewayNotConfigured("PAGHIPER_API_KEY")
        if not self.token:
            raise GatewayNotConfigured("PAGHIPER_TOKEN")
        return self.api_key, self.token

    def _post(self, url: str, body: dict) -> requests.Response:
        return requests.post(
            url, json=body,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=self.timeout,
        )

    # ---------------- cobrança ----------------
    def create_charge(self, request: ChargeRequest) -> ChargeResult:
        if request.payment_method == "pix" and request.amount_cents < PIX_MINIMUM_CENTS:
            raise BelowMinimumAmount()
        api_key, token = self._credentials()
        notification_url = request.notification_url or self.notification_url
        if not notification_url:
            raise GatewayNotConfigured("PAGHIPER_NOTIFICATION_URL")

        body = {
            "apiKey": api_key,
            "token": token,
            "order_id": request.order_id,
            "payer_email": request.customer.email,
            "payer_name": request.customer.name,
            "payer_cpf_cnpj": only_digits(request.customer.document),
            "payer_phone": only_digits(request.customer.phone),
            "notification_url": notification_url,
            "fixed_description": True,
            "days_due_date": max(1, request.validity_days or DEFAULT_VALIDITY_DAYS),
            "items": [{
                "description": request.plan_name,
                "quantity": 1,
                "item_id": request.order_id,
                "price_cents": request.amount_cents,
            }],
        }
        if request.payment_method == "pix":
            url = f"{self.pix_base_url}/invoice/create/"
            label = "PIX"
        else:
            url = f"{self.api_base_url}/transaction/create/"
            label = "Boleto"
            body.update({"type_bank_slip": "boletoA4", "late_payment_fine": 2.0, "per_day_interest": True})

        log = current_app.logger
        log.info("[PagHiper] Criando cobrança %s: order=%s valor=%.2f cliente=%s",
                 label, request.order_id, request.amount_cents / 100, request.customer.email)

        try:
            resp = self._post(url, body)
        except requests.RequestException as exc:
            log.error("[PagHiper] Falha de transporte ao criar cobrança %s: %s", label, exc)
            raise ChargeCreationFailed(f"Erro ao criar cobrança {label}: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = None
        create = (data or {}).get("create_request") if isinstance(data, dict) else None
        create = create if isinstance(create, dict) else {}

        if resp.status_code != 201 or create.get("result") != "success":
            log.error("[PagHiper] Erro ao criar cobrança %s: status=%s result=%s message=%s",
                      label, resp.status_code, create.get("result"), create.get("response_message"))
            raise ChargeCreationFailed(create.get("response_message") or f"Erro ao criar cobrança {label}")

        log.info("[PagHiper] Cobrança %s criada: transaction=%s order=%s",
                 label, create.get("transaction_id"), create.get("order_id"))

        due_date = self.clock() + timedelta(days=request.validity_days or DEFAULT_VALIDITY_DAYS)
        if request.payment_method == "pix":
            return PixChargeResult(
                transaction_id=create.get("transaction_id"),
                processor_order_id=create.get("order_id"),
                due_date=due_date,
                instructions=_pix_instructions(create),
                raw=data,
            )
        slip = create.get("bank_slip") if isinstance(create.get("bank_slip"), dict) else {}
        return BoletoChargeResult(
            transaction_id=create.get("transaction_id"),
            processor_order_id=create.get("order_id"),
            due_date=due_date,
            instructions=BoletoInstructions(
                digitable_line=slip.get("digitable_line") or None,
                url=slip.get("url_slip") or None,
                pdf_url=slip.get("url_slip_pdf") or None,
            ),
            raw=data,
        )

    # ---------------- consulta ----------------
    def query_status(self, transaction_id: str, payment_method: str) -> StatusResult | None:
        """None = status desconhecido (tentar de novo depois), nunca 'não pago'."""
        log = current_app.logger
        try:
            api_key, token = self._credentials()
        except GatewayNotConfigured as exc:
            log.error("[PagHiper] %s", exc.message)
            return None

        if payment_method == "pix":
            url = f"{self.pix_base_url}/invoice/status/"
        else:
            url = f"{self.api_base_url}/transaction/status/"

        try:
            resp = self._post(url, {"token": token, "apiKey": api_key, "transaction_id": transaction_id})
        except requests.RequestException as exc:
            log.error("[PagHiper] Falha ao consultar status (%s): %s", payment_method, exc)
            return None

        if not (200 <= resp.status_code < 300):
            log.error("[PagHiper] Erro ao consultar status da transação (%s): HTTP %s",
                      payment_method, resp.status_code)
            return None
        try:
            data = resp.json()
        except ValueError:
            log.warning("[PagHiper] Resposta de status não é JSON (%s)", payment_method)
            return None

        req = data.get("status_request") if isinstance(data, dict) else None
        if not isinstance(req, dict):
            log.warning("[PagHiper] status_request ausente na resposta (%s)", payment_method)
            return None
        if req.get("result") != "success":
            log.warning("[PagHiper] Consulta de status sem sucesso (%s): %s",
                        payment_method, req.get("response_message"))
            return None

        if payment_method == "pix":
            status = req.get("status")
            paid_date = req.get("status_date") if _is_paid(status) else None
        else:
            tx = req.get("transaction") if isinstance(req.get("transaction"), dict) else {}
            status = req.get("status") or tx.get("status")
            paid_date = next((tx[k] for k in _BOLETO_PAID_DATE_FIELDS if tx.get(k)), None)
            if not paid_date and _is_paid(status):
                paid_date = req.get("status_date")

        if not status:
            log.warning("[PagHiper] Status não encontrado na resposta (%s)", payment_method)
            return None

        log.info("[PagHiper] Status extraído (%s): transaction=%s status=%s paid=%s",
                 payment_method, transaction_id, status, paid_date)
        return StatusResult(status=str(status).lower(), paid_date=str(paid_date) if paid_date else None)


def _is_paid(status) -> bool:
    return str(status or "").lower() in PAID_STATUSES


def _pix_instructions(create: dict) -> PixInstructions:
    # pix_code pode vir como string ou como objeto {emv, qrcode_image_url, ...}
    code = create.get("pix_code")
    image = create.get("qrcode_image_url")
    if isinstance(code, dict):
        image = image or code.get("qrcode_image_url")
        code = code.get("emv")
    return PixInstructions(qrcode_image=image or None, pix_code=code or None)
