from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

from annostudio.api.base import ApiClient
from annostudio.models import ImageAnnotation, ImageMetadata

logger = logging.getLogger(__name__)

_BASE = "/annotations/image-metadata"


def image_metadata_payload(
    dataset_id: str, row_index: int, field_name: str, images: list[ImageMetadata], *, is_ai_generated: bool = False
) -> dict[str, Any]:
    return {
        "datasetId": dataset_id,
        "rowIndex": int(row_index),
        "fieldName": field_name,
        "images": [img.to_payload() for img in images],
        "isAiGenerated": is_ai_generated,
    }


def save_image_metadata(
    client: ApiClient, dataset_id: str, row_index: int, field_name: str, images: list[ImageMetadata]
) -> ImageAnnotation:
    """Replace the whole images array for (dataset, row, field)."""
    body = client.post(_BASE, json=image_metadata_payload(dataset_id, row_index, field_name, images))
    logger.info("Saved %d image annotations for %s row %s field %s", len(images), dataset_id, row_index, field_name)
    return ImageAnnotation.model_validate(body or {})


def row_field_annotation(client: ApiClient, dataset_id: str, row_index: int, field_name: str) -> Optional[ImageAnnotation]:
    path = f"{_BASE}/dataset/{dataset_id}/row/{int(row_index)}/field/{quote(field_name, safe='')}"
    body = client.get(path, allow_404=True)
    return ImageAnnotation.model_validate(body) if body else None
