"""auth/ -- Session and access control package for the materials portal.

LockoutTracker, TokenAuthority, RevocationLedger and AccessGate live here,
together with the identity store and the login flow that composes them.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
