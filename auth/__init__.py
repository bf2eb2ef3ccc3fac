"""auth/ -- Session token lifecycle for Gatehouse: codec, issuer, verifier.

Layer rule: auth/ imports only stdlib + third-party libraries, plus Settings
from core/ for type hints and dependency wiring. It does NOT import from
api/, web/, or cache/ at runtime. api/ and web/ import from auth/, not the
other way around.
"""
