import logging
import time
from typing import Dict, List, Optional, Union

import requests

from sentiscope import config
from sentiscope.errors import AppError

logger = logging.getLogger(__name__)

TOKOPEDIA_DATASET = "farhamu/tokopedia-product-reviews-2019"
MAX_ROWS_PER_REQUEST = 100
PAGE_DELAY = 0.5
REQUEST_TIMEOUT = 30
INFO_TIMEOUT = 10

TEXT_FIELDS = ("review", "text", "comment", "content", "sentence")


def _rating_to_sentiment(rating: Union[int, float]) -> str:
    if rating <= 2:
        return "negative"
    if rating == 3:
        return "neutral"
    return "positive"


def _label_to_sentiment(label) -> Optional[str]:
    if isinstance(label, bool):
        return None
    if isinstance(label, (int, float)):
        return _rating_to_sentiment(label)
    if isinstance(label, str):
        lowered = label.lower()
        for name in ("positive", "negative", "neutral"):
            if name in lowered:
                return name
    return None


def _map_row(row: Dict) -> Dict:
    text = next((row[field] for field in TEXT_FIELDS if row.get(field)), "")
    if row.get("rating") is not None:
        label = row["rating"]
    elif row.get("label") is not None:
        label = row["label"]
    else:
        label = row.get("sentiment") or "unknown"
    return {
        "text": str(text),
        "originalLabel": label,
        "sentiment": _label_to_sentiment(label),
        "productName": row.get("product_name"),
    }


def _get_rows(dataset: str, config_name: str, split: str, offset: int, length: int) -> List[Dict]:
    try:
        response = requests.get(
            f"{config.HUGGINGFACE_DATASETS_URL}/rows",
            params={"dataset": dataset, "config": config_name, "split": split, "offset": offset, "length": length},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        payload = response.json()
    except requests.HTTPError as exc:
        status = exc.response.status_code if exc.response is not None else 500
        try:
            detail = exc.response.json().get("error")
        except (ValueError, AttributeError):
            detail = None
        raise AppError(f"HuggingFace API error: {detail or exc}", status)
    except (requests.RequestException, ValueError) as exc:
        logger.error("Dataset request failed: %s", exc)
        raise AppError("Failed to fetch dataset from HuggingFace", 500)

    if not isinstance(payload, dict) or "rows" not in payload:
        raise AppError("Invalid response from HuggingFace API", 500)
    return [entry.get("row", {}) for entry in payload["rows"]]


def fetch_dataset(
    dataset: str,
    config_name: str = "default",
    split: str = "train",
    limit: int = 100,
    offset: int = 0,
) -> List[Dict]:
    """Fetch up to ``limit`` rows, paging 100 at a time with a pause between pages."""
    items: List[Dict] = []
    remaining = limit
    current = offset
    while remaining > 0:
        size = min(remaining, MAX_ROWS_PER_REQUEST)
        rows = _get_rows(dataset, config_name, split, current, size)
        items.extend(item for item in map(_map_row, rows) if item["text"].strip())
        logger.info("Fetched %d/%d items from %s", len(items), limit, dataset)

        if len(rows) < size:
            break
        remaining -= size
        current += size
        if remaining > 0:
            time.sleep(PAGE_DELAY)
    return items


def fetch_tokopedia_reviews(limit: int = 100, offset: int = 0) -> List[Dict]:
    return fetch_dataset(TOKOPEDIA_DATASET, "default", "train", limit, offset)


def filter_by_keywords(items: List[Dict], keywords: List[str]) -> List[Dict]:
    lowered = [k.lower() for k in keywords if k and k.strip()]
    if not lowered:
        return items
    return [
        item
        for item in items
        if any(k in item["text"].lower() or k in (item.get("productName") or "").lower() for k in lowered)
    ]


def get_dataset_info(dataset: str) -> Dict:
    try:
        response = requests.get(
            f"{config.HUGGINGFACE_DATASETS_URL}/info",
            params={"dataset": dataset},
            timeout=INFO_TIMEOUT,
        )
        response.raise_for_status()
        return response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("Dataset info request failed for %s: %s", dataset, exc)
        raise AppError("Failed to fetch dataset info", 500)
