"""Kernel ORM models."""

from lead_kernel.models.claims import LeadClaimsRollup
from lead_kernel.models.entitlement import DatasetAccess
from lead_kernel.models.lead import LEAD_EXPORT_COLUMNS, Lead
from lead_kernel.models.ledger import CreditLedgerEntry
from lead_kernel.models.profile import UserProfile

__all__ = [
    "CreditLedgerEntry",
    "DatasetAccess",
    "LEAD_EXPORT_COLUMNS",
    "Lead",
    "LeadClaimsRollup",
    "UserProfile",
    "import_all_models",
]


def import_all_models() -> None:
    """Import every ORM module so Base.metadata knows all tables."""
    import lead_ingestion.models.staging  # noqa: F401
