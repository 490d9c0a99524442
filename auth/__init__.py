"""auth/ -- Access control and credential package for Gatehouse.

Layer rule: auth/ imports stdlib, third-party libraries, and core/ (the
kernel). It does NOT import from api/. api/ and main.py import from auth/,
not the other way around.
"""
