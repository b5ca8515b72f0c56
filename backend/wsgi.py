# backend/wsgi.py
from pos_app import create_app

app = create_app()
