# backend/wsgi.py
from gestao import create_app

app = create_app()
