"""
HuggingFace sentiment classification.

Texts are sent one at a time to the hosted classifier; the top-scoring label
is folded into positive / negative / neutral. Batches run sequentially and a
failing text is recorded with the ``error`` label instead of aborting.
"""
import logging
import re
import time
from typing import Dict, List, Optional

import requests

from sentiscope import config
from sentiscope.errors import AppError

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 100
REQUEST_TIMEOUT = 30
ERROR_LABEL = "error"
VALID_LABELS = ("positive", "negative", "neutral")

# English and Indonesian
STOPWORDS = {
    "the", "is", "at", "which", "on", "and", "or", "but", "in", "with", "to", "for", "of", "as", "by",
    "yang", "dan", "di", "ke", "dari", "untuk", "pada", "ini", "itu", "dengan", "adalah", "ada", "juga",
    "tidak", "akan", "bisa", "sudah", "telah", "dapat", "harus", "saya", "aku", "kamu", "mereka",
    "this", "that", "very", "so", "just", "now", "been", "have", "has", "had", "do", "does", "did",
}

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def map_sentiment_label(label: str) -> str:
    lower = (label or "").lower()
    if "positive" in lower:
        return "positive"
    if "negative" in lower:
        return "negative"
    if "neutral" in lower or "mixed" in lower:
        return "neutral"
    logger.warning("Unknown sentiment label %r, mapping to neutral", label)
    return "neutral"


def extract_keywords(text: str) -> List[str]:
    keywords: List[str] = []
    seen = set()
    for raw in text.lower().split():
        word = _NON_ALNUM.sub("", raw)
        if len(word) > 3 and word not in STOPWORDS and word not in seen:
            seen.add(word)
            keywords.append(word)
    return keywords


def _raise_for_upstream(exc: requests.HTTPError) -> None:
    status = exc.response.status_code if exc.response is not None else 500
    try:
        detail = exc.response.json().get("error")
    except (ValueError, AttributeError):
        detail = None
    if status == 401:
        raise AppError("Invalid HuggingFace API key", 500)
    if status == 503:
        raise AppError("Model is loading, please try again in a moment", 503)
    raise AppError(f"HuggingFace API error: {detail or 'HuggingFace API error'}", status)


def _classify(text: str) -> List[dict]:
    try:
        response = requests.post(
            config.HUGGINGFACE_API_URL,
            json={"inputs": text},
            headers={
                "Authorization": f"Bearer {config.HUGGINGFACE_API_KEY}",
                "Content-Type": "application/json",
            },
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        payload = response.json()
    except requests.HTTPError as exc:
        _raise_for_upstream(exc)
    except requests.Timeout:
        raise AppError("Request timeout - text may be too long", 408)
    except (requests.RequestException, ValueError) as exc:
        logger.error("HuggingFace request failed: %s", exc)
        raise AppError("Failed to analyze sentiment", 500)

    # The API answers [[{label, score}, ...]] for a single input
    if isinstance(payload, list) and payload and isinstance(payload[0], list):
        payload = payload[0]
    if not isinstance(payload, list):
        return []
    return [entry for entry in payload if isinstance(entry, dict) and "label" in entry]


def analyze_single_text(text: str) -> Dict:
    if not text or not text.strip():
        raise AppError("Text cannot be empty", 400)
    if not config.HUGGINGFACE_API_KEY:
        raise AppError("HuggingFace API key is not configured", 500)

    scores = _classify(text)
    if not scores:
        raise AppError("No sentiment results returned from API", 500)

    top = max(scores, key=lambda entry: float(entry.get("score", 0)))
    return {
        "text": text,
        "sentiment": {
            "label": map_sentiment_label(str(top["label"])),
            "score": float(top.get("score", 0)),
        },
        "keywords": extract_keywords(text),
    }


def analyze_batch_texts(texts: List[str], delay: Optional[float] = None) -> List[Dict]:
    if not texts:
        raise AppError("Text array cannot be empty", 400)
    if len(texts) > MAX_BATCH_SIZE:
        raise AppError(f"Maximum {MAX_BATCH_SIZE} texts per batch", 400)

    valid = [text for text in texts if isinstance(text, str) and text.strip()]
    if not valid:
        raise AppError("No valid texts to analyze", 400)

    pause = config.HF_REQUEST_DELAY if delay is None else delay
    results = []
    for index, text in enumerate(valid):
        if index and pause > 0:
            time.sleep(pause)
        try:
            results.append(analyze_single_text(text))
        except AppError as exc:
            logger.warning("Sentiment analysis failed for item %d: %s", index, exc.message)
            results.append({"text": text, "sentiment": {"label": ERROR_LABEL, "score": 0.0}, "keywords": []})
    return results


def get_sentiment_statistics(results: List[Dict]) -> Dict:
    total = len(results)
    counts = {label: 0 for label in (*VALID_LABELS, ERROR_LABEL)}
    for result in results:
        label = result["sentiment"]["label"]
        if label in counts:
            counts[label] += 1

    valid = total - counts[ERROR_LABEL]

    def _pct(count: int) -> float:
        return (count / valid) * 100 if valid > 0 else 0

    return {
        "total": total,
        "positive": counts["positive"],
        "negative": counts["negative"],
        "neutral": counts["neutral"],
        "error": counts[ERROR_LABEL],
        "positivePercentage": _pct(counts["positive"]),
        "negativePercentage": _pct(counts["negative"]),
        "neutralPercentage": _pct(counts["neutral"]),
        "averageScore": sum(r["sentiment"]["score"] for r in results) / total if total else 0,
    }
