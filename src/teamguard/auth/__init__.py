"""Authentication — passwordless login and sessions.

Learn: Two credential kinds, both opaque random tokens:
1. Passwordless token → single-use, 15 min, delivered out of band
2. Session token → 24 h, cookie or Bearer header

Both resolve to a typed Identity for a verified user. FastAPI wiring
lives in teamguard.auth.dependencies.
"""
