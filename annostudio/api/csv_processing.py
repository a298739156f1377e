from __future__ import annotations

import logging

from annostudio.api.base import ApiClient
from annostudio.models import CSVUploadResult, HeaderValidationResult

logger = logging.getLogger(__name__)


def _file_part(file_name: str, content: bytes, mime: str = "") -> dict[str, tuple]:
    return {"file": (file_name, content, mime or "application/octet-stream")}


def upload_csv(client: ApiClient, dataset_id: str, file_name: str, content: bytes, mime: str = "") -> CSVUploadResult:
    body = client.post(f"/csv-processing/upload/{dataset_id}", files=_file_part(file_name, content, mime))
    result = CSVUploadResult.model_validate(body)
    logger.info("Uploaded %s to dataset %s: %d rows", file_name, dataset_id, result.total_rows)
    return result


def validate_headers(client: ApiClient, dataset_id: str, file_name: str, content: bytes, mime: str = "") -> HeaderValidationResult:
    body = client.post(f"/csv-processing/validate-headers/{dataset_id}", files=_file_part(file_name, content, mime))
    return HeaderValidationResult.model_validate(body)
