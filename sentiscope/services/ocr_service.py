import logging
from typing import List

import pytesseract
from PIL import Image, UnidentifiedImageError

from sentiscope import config
from sentiscope.errors import AppError

logger = logging.getLogger(__name__)

MIN_LINE_LENGTH = 4


def extract_text(image_path: str) -> str:
    try:
        with Image.open(image_path) as im:
            text = pytesseract.image_to_string(im, lang=config.OCR_LANG)
    except UnidentifiedImageError:
        raise AppError("Uploaded file is not a readable image", 400)
    except pytesseract.TesseractNotFoundError:
        raise AppError("OCR engine is not installed on the server", 500)
    except pytesseract.TesseractError as exc:
        logger.error("Tesseract failed on %s: %s", image_path, exc)
        raise AppError("Failed to extract text from image", 500)

    text = (text or "").strip()
    logger.info("OCR extracted %d characters", len(text))
    return text


def split_lines(text: str) -> List[str]:
    """Fallback segmentation when comments are not parsed by the language model."""
    return [line.strip() for line in text.splitlines() if len(line.strip()) >= MIN_LINE_LENGTH]
