"""
Config -> Kernel bridges.

Convert configuration artifacts into kernel inputs.  They live here because
the kernel must never import lead_config.
"""

from __future__ import annotations

from lead_config.schema import LeadsConfiguration
from lead_kernel.domain.business_rules import ClaimPolicy


def build_claim_policy(config: LeadsConfiguration) -> ClaimPolicy:
    claims = config.claims
    return ClaimPolicy(
        exclusive_cap=claims.exclusive_cap,
        premium_cap=claims.premium_cap,
        shared_cap=claims.shared_cap,
        cost_per_record=claims.cost_per_record,
    )


def engine_options(config: LeadsConfiguration) -> dict:
    """Keyword arguments for ``lead_kernel.db.engine.init_engine_from_url``."""
    db = config.database
    return {
        "echo": db.echo,
        "pool_size": db.pool_size,
        "max_overflow": db.max_overflow,
        "busy_timeout": db.busy_timeout,
    }
