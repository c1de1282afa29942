"""auth/ -- Account access core for AccessAdmin: hashing, tokens, roles, and flows.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
