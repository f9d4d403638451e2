"""auth/ -- Identity and access control package for Registrar.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, web/ or records/.
api/ and web/ import from auth/, not the other way around.
"""
