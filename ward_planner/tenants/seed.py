# ward_planner/tenants/seed.py
import logging
from typing import Any, Dict, Iterable, List, Optional

from ..settings import settings
from .models import TenantSeed

logger = logging.getLogger(__name__)


def load_seed_wards(raw_entries: Optional[Iterable[Dict[str, Any]]] = None) -> List[TenantSeed]:
    """
    Build the provisioning list from configuration.

    Duplicate ids keep the first entry, matching insert-or-ignore semantics.
    """
    entries = settings.seed_wards if raw_entries is None else raw_entries
    seeds: List[TenantSeed] = []
    seen = set()
    for entry in entries:
        seed = TenantSeed.model_validate(entry)
        if seed.id in seen:
            logger.warning(f"Seed list contains duplicate ward id '{seed.id}'. Keeping the first entry.")
            continue
        seen.add(seed.id)
        seeds.append(seed)
    return seeds
