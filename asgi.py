"""
asgi.py -- ASGI entry point for Gatehouse.

Settings are read from the environment when this module is imported. A
missing JWT_KEY, PORT, COOKIE_NAME, USERNAME, PASSWORD or EXPIRE_IN stops the
server before it accepts a connection.

Run with:  uvicorn asgi:app --port $PORT
"""

from api.main import create_app

app = create_app()
