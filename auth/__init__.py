"""auth/ -- Login core for AuthBridge: credentials, OAuth linking, sessions.

Layer rule: auth/ imports only stdlib + third-party libraries, plus core/
for configuration. It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
