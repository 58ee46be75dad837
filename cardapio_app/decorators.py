# cardapio_app/decorators.py
# -*- coding: utf-8 -*-
from __future__ import annotations
from functools import wraps
from flask import g, jsonify
from flask_jwt_extended import verify_jwt_in_request, get_jwt

from .services.plan_orders_store import get_tenant

def tenant_required(view_func):
    """Exige um JWT válido com claim tenant_id de um tenant existente."""
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        tenant_id = get_jwt().get("tenant_id")
        if not tenant_id:
            return jsonify(success=False, error="Não autenticado"), 401
        if not get_tenant(tenant_id):
            return jsonify(success=False, error="Tenant not found"), 404
        g.tenant_id = tenant_id
        return view_func(*args, **kwargs)
    return wrapper
