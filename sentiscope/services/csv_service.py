import logging
import re
from typing import Dict, List, Optional, Tuple

import pandas as pd

from sentiscope.errors import AppError
from sentiscope.services import openai_service

logger = logging.getLogger(__name__)

# Checked in order when the requested column is not present verbatim
COMMON_TEXT_COLUMNS = ["text", "comment", "review", "content", "message", "feedback", "ulasan", "komentar"]

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_WORD_SEPARATORS = re.compile(r"[\s_\-.]+")


def _words(name: str) -> List[str]:
    return [w for w in _WORD_SEPARATORS.split(_CAMEL_BOUNDARY.sub(r"\1 \2", name).lower()) if w]


def read_rows(path: str) -> Tuple[List[str], List[Dict[str, str]]]:
    try:
        frame = pd.read_csv(path, dtype=str, keep_default_na=False, skipinitialspace=True)
    except pd.errors.EmptyDataError:
        raise AppError("CSV file is empty", 400)
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise AppError(f"Failed to parse CSV file: {exc}", 400)

    frame.columns = [str(col).strip() for col in frame.columns]
    columns = list(frame.columns)
    if not columns:
        raise AppError("CSV file has no columns", 400)
    return columns, frame.to_dict(orient="records")


def _match_column(columns: List[str], requested: Optional[str]) -> Optional[str]:
    if requested:
        if requested in columns:
            return requested
        lowered = requested.lower()
        for col in columns:
            if col.lower() == lowered:
                return col

    candidates = [requested] if requested else []
    candidates += [name for name in COMMON_TEXT_COLUMNS if name not in candidates]
    # whole-word matches only, so "text" does not hit "context_id"
    column_words = [(col, set(_words(col))) for col in columns]
    for candidate in candidates:
        wanted = set(_words(candidate))
        for col, words in column_words:
            if wanted and wanted <= words:
                return col
    return None


async def find_text_column(columns: List[str], rows: List[Dict[str, str]], requested: Optional[str] = None) -> str:
    """Exact, case-insensitive, whole-word, AI guess, then the first column."""
    matched = _match_column(columns, requested)
    if matched:
        return matched

    if openai_service.is_available():
        try:
            return await openai_service.detect_text_column(columns, rows[:3])
        except Exception as exc:
            logger.warning("AI column detection failed, using first column: %s", exc)

    logger.info("No text column matched %r, falling back to %r", requested, columns[0])
    return columns[0]


def extract_texts(rows: List[Dict[str, str]], column: str, limit: int = 100) -> List[str]:
    texts = []
    for row in rows:
        value = str(row.get(column) or "").strip()
        if value:
            texts.append(value)
        if len(texts) >= limit:
            break
    return texts
