from __future__ import annotations

import logging

from annostudio.api.base import ApiClient
from annostudio.models import CSVImport

logger = logging.getLogger(__name__)


def list_for_dataset(client: ApiClient, dataset_id: str) -> list[CSVImport]:
    return [CSVImport.model_validate(i) for i in (client.get(f"/csv-processing/dataset/{dataset_id}/imports") or [])]


def delete_import(client: ApiClient, dataset_id: str, csv_import_id: str) -> dict:
    body = client.delete(f"/datasets/{dataset_id}/csv-imports/{csv_import_id}") or {}
    logger.info("Deleted CSV import %s from dataset %s", csv_import_id, dataset_id)
    return body
