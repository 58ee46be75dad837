# cardapio_app/wsgi.py
# -*- coding: utf-8 -*-
from cardapio_app import create_app

app = create_app()
