"""
Business modules live under this package.

Each module owns its routes (admin.py) and domain rules (service.py) and
reuses the platform primitives: record stores, session gate, RBAC, storage.
"""
