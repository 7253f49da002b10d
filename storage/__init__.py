"""storage/ -- Durable client-side storage.

Layer rule: storage/ imports only core/ plus third-party libraries.
"""
