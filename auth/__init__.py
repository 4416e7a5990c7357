"""auth/ -- Credential store, token helpers, and the admin gate for the Degenius API.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, accounts/, mail/, or outreach/.
api/ and accounts/ import from auth/, not the other way around.
"""
