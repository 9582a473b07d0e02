# backend/wsgi.py
from liveseller import create_app

app = create_app()
