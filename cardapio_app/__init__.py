# cardapio_app/__init__.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import os

from flask import Flask
from config import Config, TestingConfig, StagingConfig, ProductionConfig
from .extensions import scheduler, init_extensions, register_cli
from .services.paghiper import PagHiperClient
from .services.plan_orders import PlanOrdersService
from .blueprints.payment import bp as payment_bp
from .blueprints.paghiper import bp as paghiper_bp
from .blueprints.tenant import bp as tenant_bp
from .jobs import register_jobs
from .timeutils import utcnow

_CONFIGS = {
    "testing": TestingConfig,
    "staging": StagingConfig,
    "production": ProductionConfig,
}

def create_app(config_object: type[Config] | None = None) -> Flask:

    app = Flask(__name__)
    if config_object is None:
        config_object = _CONFIGS.get(os.getenv("APP_ENV", "").lower(), Config)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Extensões (DB/Migrate/JWT/Limiter)
    init_extensions(app)

    # Serviço de pedidos de plano: uma instância por app, usada via get_plan_orders()
    app.extensions["plan_orders"] = PlanOrdersService(gateway=PagHiperClient.from_config(app.config))
    app.config["STARTED_AT"] = utcnow().strftime("%Y-%m-%d %H:%M:%S UTC")

    # Blueprints
    app.register_blueprint(payment_bp)
    app.register_blueprint(paghiper_bp)
    app.register_blueprint(tenant_bp)
    # CLI (ex.: flask init-db, flask reconcile-orders)
    register_cli(app)

    # Scheduler (varredura de pedidos pendentes na PagHiper)
    if not app.config.get("TESTING") and os.getenv("DISABLE_SCHEDULER") != "1":
        register_jobs(app)
        if not scheduler.running:
            scheduler.start()

    return app
