# cardapio_app/jobs.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from .extensions import scheduler
from .services.plan_orders import get_plan_orders

RECONCILE_JOB_ID = "reconcile-plan-orders"

def _reconcile(app):
    with app.app_context():
        try:
            updated = get_plan_orders().reconcile_pending()
            if updated:
                app.logger.info("[jobs] Reconciliação atualizou %s pedido(s)", updated)
        except Exception:
            app.logger.exception("[jobs] Falha na reconciliação de pedidos pendentes")

def register_jobs(app):
    """Rede de segurança para webhooks perdidos: consulta a PagHiper periodicamente."""
    minutes = int(app.config.get("RECONCILE_INTERVAL_MINUTES") or 0)
    if minutes <= 0:
        return
    scheduler.add_job(
        _reconcile, "interval", minutes=minutes, args=[app],
        id=RECONCILE_JOB_ID, replace_existing=True, max_instances=1, coalesce=True,
    )
