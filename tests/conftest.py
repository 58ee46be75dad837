# tests/conftest.py
# -*- coding: utf-8 -*-
import os
import sys
import uuid
import pathlib
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

# =====================================================================================
# Localização do projeto (garante que "cardapio_app" e config.py estejam no sys.path)
# =====================================================================================
def _add_project_root():
    here = pathlib.Path(__file__).resolve()
    for candidate in [here.parent, *here.parents]:
        if (candidate / "cardapio_app").is_dir():
            if str(candidate) not in sys.path:
                sys.path.insert(0, str(candidate))
            return candidate
    return None


PROJECT_ROOT = _add_project_root()

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DISABLE_SCHEDULER", "1")


# =====================================================================================
# App Flask com SQLite em memória; schema criado por teste
# =====================================================================================
@pytest.fixture
def app():
    from config import TestingConfig
    from cardapio_app import create_app
    from cardapio_app.extensions import db

    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    from cardapio_app.extensions import db
    try:
        yield db.session
    finally:
        db.session.rollback()


# =====================================================================================
# HTTP da PagHiper: requests.post nunca sai para a rede
# =====================================================================================
class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text="OK"):
        self.status_code = status_code
        self._json = json_data
        self.text = text

    def json(self):
        if self._json is None:
            raise ValueError("no json")
        return self._json


class FakePagHiperHTTP:
    """Fila de respostas; sem respostas na fila devolve 200 {}."""

    def __init__(self):
        self.calls = []
        self._queue = []

    def queue(self, status_code=200, json_data=None):
        self._queue.append(FakeResponse(status_code, json_data))
        return self

    def fail_with(self, exc):
        self._queue.append(exc)
        return self

    def __call__(self, url, json=None, headers=None, timeout=None, **kwargs):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if not self._queue:
            return FakeResponse(200, {})
        nxt = self._queue.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt

    @property
    def urls(self):
        return [c["url"] for c in self.calls]


@pytest.fixture(autouse=True)
def paghiper_http(monkeypatch):
    import requests
    fake = FakePagHiperHTTP()
    monkeypatch.setattr(requests, "post", fake, raising=True)
    yield fake


def pix_created(transaction_id="TX-PIX-1", order_id="ord", **extra):
    create = {
        "result": "success",
        "response_message": "transacao criada",
        "transaction_id": transaction_id,
        "order_id": order_id,
        "qrcode_image_url": "https://pix.paghiper.com/qr/abc.png",
        "pix_code": "00020126580014br.gov.bcb.pix",
    }
    create.update(extra)
    return {"create_request": create}


def boleto_created(transaction_id="TX-BOL-1", order_id="ord", **extra):
    create = {
        "result": "success",
        "response_message": "transacao criada",
        "transaction_id": transaction_id,
        "order_id": order_id,
        "bank_slip": {
            "digitable_line": "34191.79001 01043.510047 91020.150008 1 84560000014990",
            "url_slip": "https://www.paghiper.com/checkout/boleto/abc",
            "url_slip_pdf": "https://www.paghiper.com/checkout/boleto/abc/pdf",
        },
    }
    create.update(extra)
    return {"create_request": create}


def status_response(status, **extra):
    req = {"result": "success", "status": status}
    req.update(extra)
    return {"status_request": req}


# =====================================================================================
# Relógio e gateway falsos para o serviço
# =====================================================================================
class FakeClock:
    def __init__(self, now=None):
        self.now = now or datetime(2026, 3, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kw):
        self.now = self.now + timedelta(**kw)
        return self.now


class FakeGateway:
    def __init__(self, clock=None):
        self.clock = clock or FakeClock()
        self.charges = []
        self.status_calls = []
        self.fail_with = None
        self.status_result = None

    def create_charge(self, request):
        from cardapio_app.services.paghiper import (
            PixChargeResult, BoletoChargeResult, PixInstructions, BoletoInstructions,
        )
        self.charges.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        due = self.clock() + timedelta(days=request.validity_days)
        raw = {"create_request": {"result": "success", "transaction_id": f"TX-{len(self.charges)}",
                                  "order_id": request.order_id}}
        if request.payment_method == "pix":
            return PixChargeResult(f"TX-{len(self.charges)}", request.order_id, due,
                                   PixInstructions("https://qr/img.png", "000201pix"), raw)
        return BoletoChargeResult(f"TX-{len(self.charges)}", request.order_id, due,
                                  BoletoInstructions("3419.0000", "https://slip", None), raw)

    def query_status(self, transaction_id, payment_method):
        self.status_calls.append((transaction_id, payment_method))
        return self.status_result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway(clock):
    return FakeGateway(clock)


@pytest.fixture
def service(app, gateway, clock):
    from cardapio_app.services.plan_orders import PlanOrdersService
    svc = PlanOrdersService(gateway=gateway, clock=clock)
    app.extensions["plan_orders"] = svc
    return svc


# =====================================================================================
# Tenants, tokens e pedidos
# =====================================================================================
@pytest.fixture
def tenant(db_session):
    from cardapio_app.models import Tenant
    t = Tenant(name="Açaí da Praça", slug=f"acai-{uuid.uuid4().hex[:6]}",
               created_at=datetime(2026, 2, 20, 9, 0, 0))
    db_session.add(t); db_session.commit()
    return t


@pytest.fixture
def trial_tenant(tenant):
    from cardapio_app.services import plan_orders_store as store
    store.start_trial(tenant.id)
    return tenant


@pytest.fixture
def auth_headers(app, tenant):
    from flask_jwt_extended import create_access_token
    token = create_access_token(identity="user-1", additional_claims={"tenant_id": tenant.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def checkout_body():
    return {
        "method": "pix",
        "planType": "basic",
        "customerName": "Maria Souza",
        "customerEmail": "maria@example.com",
        "customerDocument": "123.456.789-09",
        "customerPhone": "(11) 98765-4321",
    }


@pytest.fixture
def make_order(db_session):
    from cardapio_app.services import plan_orders_store as store

    def _make(tenant_id, **overrides):
        data = dict(
            tenant_id=tenant_id,
            plan_type="premium",
            customer_name="Maria Souza",
            customer_email="maria@example.com",
            customer_document="12345678909",
            customer_phone="11987654321",
            payment_method="boleto",
            status="pending",
            amount=Decimal("149.90"),
            validity_days=30,
            processor_transaction_id=f"TX-{uuid.uuid4().hex[:8]}",
            processor_response={"tenantId": tenant_id},
        )
        data.update(overrides)
        return store.create_order(**data)

    return _make
