"""Store adapters used by the achievement coordinator."""

from .advisor_directory import AdvisorDirectory
from .detail_store import DetailStore
from .reference_store import ReferenceStore, clamp_page

__all__ = [
    "AdvisorDirectory",
    "DetailStore",
    "ReferenceStore",
    "clamp_page",
]
