"""auth/ -- Credential and token lifecycle package for TokenGate.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/; configuration is injected.
api/ imports from auth/, not the other way around.
"""
