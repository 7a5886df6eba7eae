import asyncio
import json
import logging
from typing import Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from sentiscope import config
from sentiscope.errors import AppError
from sentiscope.services.sentiment_service import map_sentiment_label

logger = logging.getLogger(__name__)

DEEP_BATCH_SIZE = 10
DEEP_BATCH_DELAY = 1.0
REQUEST_TIMEOUT = 60
CHAT_HISTORY_TURNS = 10

_client: Optional[AsyncOpenAI] = None


def is_available() -> bool:
    return bool(config.OPENAI_API_KEY)


def _get_client() -> AsyncOpenAI:
    global _client
    if not is_available():
        raise AppError("OpenAI service is not available", 503)
    if _client is None:
        _client = AsyncOpenAI(api_key=config.OPENAI_API_KEY, timeout=REQUEST_TIMEOUT)
    return _client


async def _complete(
    messages: List[Dict[str, str]],
    *,
    temperature: float,
    max_tokens: int,
    json_mode: bool = False,
) -> str:
    client = _get_client()
    kwargs = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    try:
        response = await client.chat.completions.create(
            model=config.OPENAI_MODEL,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **kwargs,
        )
    except OpenAIError as exc:
        logger.error("OpenAI request failed: %s", exc)
        raise AppError(f"OpenAI request failed: {exc}", 502)
    return (response.choices[0].message.content or "").strip()


def _loads_json(content: str):
    try:
        return json.loads(content or "{}")
    except json.JSONDecodeError:
        raise AppError("OpenAI returned invalid JSON", 502)


async def detect_text_column(columns: List[str], sample_rows: List[dict]) -> str:
    """Ask the model which CSV column holds the free text to score."""
    listing = "\n".join(f"{i + 1}. {col}" for i, col in enumerate(columns))
    prompt = (
        "You are a data analysis assistant. I have a CSV file with the following columns:\n\n"
        f"{listing}\n\n"
        "Here are 3 sample rows of data:\n"
        f"{json.dumps(sample_rows[:3], indent=2, ensure_ascii=False, default=str)}\n\n"
        "Which column contains the main text/comment/review content that should be analyzed for "
        "sentiment analysis?\nReturn ONLY the exact column name, nothing else."
    )
    detected = await _complete(
        [
            {
                "role": "system",
                "content": "You are a data analysis assistant that identifies the correct column for text "
                "analysis. Return only the exact column name.",
            },
            {"role": "user", "content": prompt},
        ],
        temperature=0.3,
        max_tokens=50,
    )
    detected = detected.strip().strip('"').strip("'")
    if detected not in columns:
        raise ValueError(f"Invalid column detected: {detected}")
    logger.info("AI detected text column %r", detected)
    return detected


async def generate_insights(statistics: Dict, sample_texts: List[Dict]) -> str:
    total = statistics.get("total") or 0
    if not total:
        raise AppError("Cannot generate insights for an empty analysis", 400)

    def _rate(key: str) -> str:
        return f"{(statistics.get(key, 0) / total) * 100:.1f}"

    samples = "\n".join(
        f'{i + 1}. [{item["sentiment"].upper()}] "{item["text"][:120]}"'
        for i, item in enumerate(sample_texts[:8])
    )
    prompt = (
        "You are a professional sentiment analysis consultant providing insights for business "
        "decision-making.\n\n"
        "ANALYSIS DATA:\n"
        f"Total Analyzed: {total} items\n"
        f"Positive: {statistics.get('positive', 0)} ({_rate('positive')}%)\n"
        f"Negative: {statistics.get('negative', 0)} ({_rate('negative')}%)\n"
        f"Neutral: {statistics.get('neutral', 0)} ({_rate('neutral')}%)\n"
        f"Average Sentiment Score: {statistics.get('averageScore', 0):.3f}\n\n"
        f"SAMPLE FEEDBACK:\n{samples}\n\n"
        "TASK:\nProvide a comprehensive analysis structured as follows:\n\n"
        "1. OVERALL SENTIMENT: One clear sentence about the dominant sentiment and what it means\n"
        "2. KEY FINDINGS: 2-3 specific observations from the data\n"
        "3. ACTIONABLE RECOMMENDATIONS: 2-3 concrete actions to improve or maintain sentiment\n"
        "4. PRIORITY AREAS: What should be addressed first based on the negative/neutral feedback"
    )
    insights = await _complete(
        [
            {
                "role": "system",
                "content": "You are an expert business analyst specializing in sentiment analysis and "
                "customer experience insights. Provide clear, actionable, and professional insights.",
            },
            {"role": "user", "content": prompt},
        ],
        temperature=0.7,
        max_tokens=500,
    )
    logger.info("AI insights generated")
    return insights


async def explain_sentiment(text: str, sentiment: str, score: float) -> str:
    prompt = (
        "Analyze and explain the sentiment classification for this text:\n\n"
        f'TEXT: "{text}"\n\n'
        f"CLASSIFICATION: {sentiment.upper()}\n"
        f"CONFIDENCE: {score * 100:.1f}%\n\n"
        "Provide a clear explanation that includes:\n"
        "1. The main reason for this sentiment classification\n"
        "2. Specific words or phrases that contributed (quote them)\n"
        "3. Any emotional tone or context that influenced the decision\n\n"
        "Keep it concise (2-3 sentences) but insightful."
    )
    return await _complete(
        [
            {
                "role": "system",
                "content": "You are a sentiment analysis expert who explains classifications with specific "
                "evidence. Always quote key words/phrases from the text.",
            },
            {"role": "user", "content": prompt},
        ],
        temperature=0.5,
        max_tokens=200,
    )


async def deep_sentiment_analysis(text: str) -> Dict:
    prompt = (
        "Perform deep sentiment analysis on this text with advanced context understanding:\n\n"
        f'TEXT: "{text}"\n\n'
        "Consider explicit emotional words and tone, implicit meaning and context, sarcasm, irony or "
        "nuanced language, and the overall message and intent.\n\n"
        "Return a JSON object with these fields:\n"
        '{\n  "sentiment": "positive" | "negative" | "neutral",\n'
        '  "score": <confidence score 0.0 to 1.0>,\n'
        '  "explanation": "<2-3 sentences explaining the classification with evidence from the text>",\n'
        '  "keyPhrases": ["<phrase 1>", "<phrase 2>", "<phrase 3>"]\n}\n\n'
        "Return ONLY valid JSON, no additional text."
    )
    content = await _complete(
        [
            {
                "role": "system",
                "content": "You are an expert sentiment analyst with deep understanding of language nuances, "
                "context, sarcasm, and emotional tone. Return only valid JSON.",
            },
            {"role": "user", "content": prompt},
        ],
        temperature=0.3,
        max_tokens=400,
        json_mode=True,
    )
    result = _loads_json(content)
    if not isinstance(result, dict):
        result = {}
    score = result.get("score")
    return {
        "sentiment": map_sentiment_label(str(result.get("sentiment") or "neutral")),
        "score": float(score) if isinstance(score, (int, float)) else 0.5,
        "explanation": result.get("explanation") or "",
        "keyPhrases": _key_phrases(result.get("keyPhrases")),
    }


def _key_phrases(value) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(phrase) for phrase in value if phrase]
    return []


def _failed_deep_result(text: str) -> Dict:
    return {
        "text": text,
        "sentiment": "neutral",
        "score": 0.5,
        "explanation": "Analysis failed",
        "keyPhrases": [],
    }


async def batch_deep_sentiment_analysis(texts: List[str]) -> List[Dict]:
    """Score texts in groups of ten; every call in a group is settled on its own."""
    _get_client()
    logger.info("Deep sentiment analysis on %d texts", len(texts))

    results: List[Dict] = []
    for start in range(0, len(texts), DEEP_BATCH_SIZE):
        group = texts[start:start + DEEP_BATCH_SIZE]
        settled = await asyncio.gather(
            *(deep_sentiment_analysis(text) for text in group),
            return_exceptions=True,
        )
        for text, outcome in zip(group, settled):
            if isinstance(outcome, Exception):
                logger.warning("Deep analysis failed in group %d: %s", start // DEEP_BATCH_SIZE + 1, outcome)
                results.append(_failed_deep_result(text))
            else:
                results.append({"text": text, **outcome})

        if start + DEEP_BATCH_SIZE < len(texts):
            await asyncio.sleep(DEEP_BATCH_DELAY)
    return results


async def parse_comments_from_ocr(ocr_text: str) -> List[Dict[str, str]]:
    prompt = (
        "You are an expert at parsing social media comments from OCR-extracted text across all platforms "
        "(YouTube, Instagram, Twitter/X, Facebook, TikTok, LinkedIn, Reddit, Google or Amazon reviews).\n\n"
        f"OCR EXTRACTED TEXT:\n{ocr_text}\n\n"
        "Extract individual comments with their metadata. Each comment typically has a username, a timestamp "
        "(relative like '5 days ago' or absolute like 'Jan 15, 2024') and the comment text. Ignore UI elements "
        "such as Reply, like, share, follow, subscribe, view replies, show more.\n\n"
        'Return a JSON object: {"comments": [{"username": "...", "timestamp": "...", "comment": "..."}]}\n'
        'If username is missing use "Unknown User", if timestamp is missing use "Unknown Time". Merge '
        "multi-line comments, keep emojis, skip empty or UI-only text. Return ONLY valid JSON."
    )
    content = await _complete(
        [
            {
                "role": "system",
                "content": "You parse and structure social media comments from OCR text, filtering out UI "
                "elements. Return only valid JSON.",
            },
            {"role": "user", "content": prompt},
        ],
        temperature=0.3,
        max_tokens=2000,
        json_mode=True,
    )
    parsed = _loads_json(content)
    raw_comments = parsed if isinstance(parsed, list) else (parsed.get("comments") or [])

    comments = []
    for entry in raw_comments:
        if not isinstance(entry, dict):
            continue
        comment = str(entry.get("comment") or "").strip()
        if not comment:
            continue
        comments.append(
            {
                "username": str(entry.get("username") or "Unknown User"),
                "timestamp": str(entry.get("timestamp") or "Unknown Time"),
                "comment": comment,
            }
        )
    logger.info("Parsed %d comments from OCR text", len(comments))
    return comments


def _context_block(context: Dict) -> str:
    stats = context.get("statistics") or {}
    lines = [
        f"Total analyzed: {stats.get('total', 0)}",
        f"Positive: {stats.get('positive', 0)}",
        f"Negative: {stats.get('negative', 0)}",
        f"Neutral: {stats.get('neutral', 0)}",
        f"Average score: {stats.get('averageScore', 0)}",
    ]
    samples = context.get("sampleResults") or []
    if samples:
        lines.append("Sample results:")
        for item in samples[:15]:
            lines.append(f'- [{item.get("sentiment", "?")}] {str(item.get("text", ""))[:200]}')
    if context.get("insights"):
        lines.append(f"Previous AI insights:\n{context['insights']}")
    return "\n".join(lines)


async def chat_about_analysis(message: str, context: Dict, history: Optional[List[Dict]] = None) -> str:
    messages = [
        {
            "role": "system",
            "content": "You are a helpful assistant that answers questions about a sentiment analysis. "
            "Ground every answer in the analysis data below, cite examples when useful, and answer in "
            "Markdown.\n\nANALYSIS DATA:\n" + _context_block(context),
        }
    ]
    for turn in (history or [])[-CHAT_HISTORY_TURNS:]:
        if turn.get("role") in ("user", "assistant") and turn.get("content"):
            messages.append({"role": turn["role"], "content": turn["content"]})
    messages.append({"role": "user", "content": message})
    return await _complete(messages, temperature=0.7, max_tokens=800)
