"""auth/ -- Registration, login and account lockout for AuthGate.

Layer rule: auth/ imports only stdlib + third-party libraries (and
dependencies.py, which is FastAPI glue). It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
