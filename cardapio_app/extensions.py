# cardapio_app/extensions.py
# -*- coding: utf-8 -*-
from __future__ import annotations
import click
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import text



db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
# storage/enabled vêm do app.config (RATELIMIT_STORAGE_URI, RATELIMIT_ENABLED)
limiter = Limiter(key_func=get_remote_address, headers_enabled=True)
scheduler = BackgroundScheduler(daemon=True)

def init_extensions(app):
    # DB/Migrate/JWT/Limiter
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

def register_cli(app):
    @app.cli.command("init-db")
    def init_db_cmd():
        """Cria as tabelas iniciais (DEV/MVP). Para produção: use flask db upgrade."""
        with app.app_context():
            # sanity check
            db.session.execute(text("SELECT 1"))
            db.create_all()
            print("Tabelas criadas.")

    @app.cli.command("reconcile-orders")
    @click.option("--limit", default=100, show_default=True, help="Máximo de pedidos pendentes consultados.")
    def reconcile_orders_cmd(limit):
        """Consulta a PagHiper para os pedidos pendentes e aplica o status retornado."""
        from .services.plan_orders import get_plan_orders
        with app.app_context():
            updated = get_plan_orders().reconcile_pending(limit=limit)
            print(f"{updated} pedido(s) atualizado(s).")
