"""gateway/ -- Authenticated access to the protected API.

Layer rule: gateway/ imports from core/ and, for typing only, auth/.
It does NOT import from storage/.
"""
