# backend/wsgi.py
from pos_ultimate import create_app

app = create_app()
