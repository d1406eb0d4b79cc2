# backend/wsgi.py
from erp_core import create_app

app = create_app()
