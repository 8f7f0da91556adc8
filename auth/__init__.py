"""auth/ -- Authentication and session-token package for TaskFlow.

Layer rule: auth/ imports only core/, stdlib, and third-party libraries.
It does NOT import from api/ or tasks/.
api/ imports from auth/, not the other way around.
"""
