# backend/wsgi.py
from cartrack import create_app

app = create_app()
