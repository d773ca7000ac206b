"""auth/ -- Session-issuing auth provider and the request auth guard.

Layer rule: auth/ imports from core/ and third-party libraries. Only
auth/dependencies.py (the guard) also imports users/, for the is_active
re-check. It does NOT import from api/ or web/; those import from auth/.
"""
