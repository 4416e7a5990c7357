"""mail/ -- Outbound email for the account lifecycle.

Layer rule: mail/ imports only stdlib, third-party libraries, and core/.
"""
