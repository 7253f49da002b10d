"""auth/ -- Session lifecycle for the Nexus client.

Layer rule: auth/ imports from core/ and storage/ plus third-party libraries.
It does NOT import from gateway/. gateway/ reaches the session only through
the two callables SessionStore hands it.
"""
