"""
lead_services -- orchestration above the kernel and ingestion layers.

Resolves caller identity, enforces roles, owns transaction boundaries and
exposes every operation through ``LeadsGateway``.
"""
