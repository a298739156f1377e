from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from annostudio.api import datasets as datasets_api
from annostudio.api.base import ApiClient
from annostudio.exceptions import ApiError
from annostudio.models import Dataset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardStats:
    total_datasets: int = 0
    total_annotations: int = 0
    completion_rate: float = 0.0


def get_stats(client: ApiClient, datasets: Optional[list[Dataset]] = None) -> DashboardStats:
    """Totals for the dashboard cards; a failing backend yields zeros."""
    try:
        items = datasets if datasets is not None else datasets_api.list_datasets(client)
    except ApiError as e:
        logger.warning("Dashboard stats unavailable: %s", e)
        return DashboardStats()
    return DashboardStats(total_datasets=len(items))
