import logging
from datetime import datetime
from typing import Dict, List, Optional

from starlette.concurrency import run_in_threadpool

from sentiscope.errors import AppError
from sentiscope.services import analysis_db_service, openai_service, sentiment_service
from sentiscope.services.sentiment_service import MAX_BATCH_SIZE

logger = logging.getLogger(__name__)


def default_title(kind: str) -> str:
    return f"{kind} Analysis - {datetime.utcnow().strftime('%Y-%m-%d %H:%M')}"


def _from_deep(result: Dict) -> Dict:
    return {
        "text": result["text"],
        "sentiment": {"label": result["sentiment"], "score": result["score"]},
        "explanation": result.get("explanation", ""),
        "keyPhrases": result.get("keyPhrases", []),
        "keywords": sentiment_service.extract_keywords(result["text"]),
    }


async def score_texts(texts: List[str], deep: bool = False) -> List[Dict]:
    """Run texts through the classifier, or through the language model when ``deep`` is set."""
    valid = [text.strip() for text in texts if isinstance(text, str) and text.strip()]
    if not valid:
        raise AppError("No valid texts to analyze", 400)
    if len(valid) > MAX_BATCH_SIZE:
        raise AppError(f"Maximum {MAX_BATCH_SIZE} texts per batch", 400)

    if deep:
        if not openai_service.is_available():
            raise AppError("AI deep analysis is not available", 503)
        return [_from_deep(r) for r in await openai_service.batch_deep_sentiment_analysis(valid)]
    return await run_in_threadpool(sentiment_service.analyze_batch_texts, valid)


async def maybe_generate_insights(results: List[Dict], statistics: Dict, requested: bool) -> Optional[str]:
    if not requested or not openai_service.is_available():
        return None
    scored = [r for r in results if r["sentiment"]["label"] != sentiment_service.ERROR_LABEL]
    if not scored:
        return None
    samples = [
        {"text": r["text"], "sentiment": r["sentiment"]["label"], "score": r["sentiment"]["score"]}
        for r in scored[:8]
    ]
    try:
        return await openai_service.generate_insights(statistics, samples)
    except AppError as exc:
        logger.warning("Insight generation failed: %s", exc.message)
        return None


def persist(
    *,
    user_id: str,
    title: str,
    input_type: str,
    results: List[Dict],
    file_path: Optional[str] = None,
    file_url: Optional[str] = None,
    ai_insights: Optional[str] = None,
) -> Dict:
    return analysis_db_service.save_analysis(
        user_id=user_id,
        title=title,
        input_type=input_type,
        results=results,
        file_path=file_path,
        file_url=file_url,
        ai_insights=ai_insights,
    )


def build_response(results: List[Dict], insights: Optional[str] = None, saved: Optional[Dict] = None, **extra) -> Dict:
    data = {
        "results": results,
        "statistics": sentiment_service.get_sentiment_statistics(results),
        "insights": insights,
        "analysisId": saved["id"] if saved else None,
    }
    data.update(extra)
    return data


def chat_context_from_analysis(analysis: Dict) -> Dict:
    items = analysis.get("items", [])
    return {
        "statistics": {
            "total": analysis["totalItems"],
            "positive": analysis["positiveCount"],
            "negative": analysis["negativeCount"],
            "neutral": analysis["neutralCount"],
            "averageScore": analysis["averageScore"],
        },
        "sampleResults": [{"text": i["textContent"], "sentiment": i["sentimentLabel"]} for i in items[:15]],
        "insights": analysis.get("aiInsights"),
    }
