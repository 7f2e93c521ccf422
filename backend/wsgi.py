# backend/wsgi.py
from inventory_api import create_app

app = create_app()
