import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from sentiscope.errors import AppError
from sentiscope.services import storage_service
from sentiscope.services.db_service import Analysis, AnalysisItem, ChatMessage, get_session

logger = logging.getLogger(__name__)

INPUT_TYPES = ("text", "batch", "csv", "image", "keywords", "dataset")
CHAT_ROLES = ("user", "assistant")


def serialize_analysis(analysis: Analysis) -> Dict:
    return {
        "id": analysis.id,
        "userId": analysis.user_id,
        "title": analysis.title,
        "inputType": analysis.input_type,
        "totalItems": analysis.total_items,
        "positiveCount": analysis.positive_count,
        "negativeCount": analysis.negative_count,
        "neutralCount": analysis.neutral_count,
        "averageScore": analysis.average_score,
        "filePath": analysis.file_path,
        "fileUrl": analysis.file_url,
        "aiInsights": analysis.ai_insights,
        "createdAt": analysis.created_at.isoformat() if analysis.created_at else None,
        "updatedAt": analysis.updated_at.isoformat() if analysis.updated_at else None,
    }


def serialize_item(item: AnalysisItem) -> Dict:
    return {
        "id": item.id,
        "analysisId": item.analysis_id,
        "textContent": item.text_content,
        "sentimentLabel": item.sentiment_label,
        "confidenceScore": item.confidence_score,
        "createdAt": item.created_at.isoformat() if item.created_at else None,
    }


def serialize_message(message: ChatMessage) -> Dict:
    return {
        "id": message.id,
        "analysisId": message.analysis_id,
        "role": message.role,
        "content": message.content,
        "createdAt": message.created_at.isoformat() if message.created_at else None,
    }


def _aggregate(results: List[Dict]) -> Dict:
    labels = [r["sentiment"]["label"] for r in results]
    return {
        "total_items": len(results),
        "positive_count": labels.count("positive"),
        "negative_count": labels.count("negative"),
        "neutral_count": labels.count("neutral"),
        "average_score": sum(float(r["sentiment"]["score"]) for r in results) / len(results),
    }


def save_analysis(
    *,
    user_id: str,
    title: str,
    input_type: str,
    results: List[Dict],
    file_path: Optional[str] = None,
    file_url: Optional[str] = None,
    ai_insights: Optional[str] = None,
) -> Dict:
    """Insert one analysis row and its items in a single transaction."""
    if not results:
        raise AppError("Cannot save an analysis without results", 400)
    if input_type not in INPUT_TYPES:
        raise AppError(f"Unsupported input type: {input_type}", 400)

    try:
        with get_session() as session:
            analysis = Analysis(
                user_id=user_id,
                title=title,
                input_type=input_type,
                file_path=file_path,
                file_url=file_url,
                ai_insights=ai_insights,
                **_aggregate(results),
            )
            session.add(analysis)
            session.flush()

            items = [
                AnalysisItem(
                    analysis_id=analysis.id,
                    position=position,
                    text_content=result["text"],
                    sentiment_label=result["sentiment"]["label"],
                    confidence_score=float(result["sentiment"]["score"]),
                )
                for position, result in enumerate(results)
            ]
            session.add_all(items)
            session.flush()

            saved = serialize_analysis(analysis)
            saved["items"] = [serialize_item(item) for item in items]
    except SQLAlchemyError as exc:
        logger.error("Failed to save analysis: %s", exc)
        raise AppError("Failed to save analysis to database", 500)

    logger.info("Saved analysis %s with %d items", saved["id"], len(saved["items"]))
    return saved


def get_user_analyses(user_id: str, limit: int = 50, offset: int = 0) -> List[Dict]:
    with get_session() as session:
        rows = (
            session.query(Analysis)
            .filter(Analysis.user_id == user_id)
            .order_by(Analysis.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return [serialize_analysis(row) for row in rows]


def get_user_analysis_count(user_id: str) -> int:
    with get_session() as session:
        return session.query(func.count(Analysis.id)).filter(Analysis.user_id == user_id).scalar() or 0


def get_analysis_by_id(analysis_id: str, user_id: str) -> Optional[Dict]:
    with get_session() as session:
        analysis = (
            session.query(Analysis)
            .filter(Analysis.id == analysis_id, Analysis.user_id == user_id)
            .first()
        )
        if not analysis:
            return None
        data = serialize_analysis(analysis)
        data["items"] = [serialize_item(item) for item in analysis.items]
        return data


def delete_analysis(analysis_id: str, user_id: str) -> None:
    with get_session() as session:
        analysis = (
            session.query(Analysis)
            .filter(Analysis.id == analysis_id, Analysis.user_id == user_id)
            .first()
        )
        if not analysis:
            raise AppError("Analysis not found", 404)
        file_path = analysis.file_path
        session.delete(analysis)

    if file_path:
        storage_service.delete_file(file_path)
    logger.info("Deleted analysis %s", analysis_id)


def get_reports(user_id: str, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None) -> Dict:
    with get_session() as session:
        query = session.query(Analysis).filter(Analysis.user_id == user_id)
        if start_date:
            query = query.filter(Analysis.created_at >= start_date)
        if end_date:
            query = query.filter(Analysis.created_at <= end_date)
        analyses = query.all()

        items_total = sum(a.total_items for a in analyses)
        weighted = sum(a.average_score * a.total_items for a in analyses)
        by_type: Dict[str, int] = {}
        for a in analyses:
            by_type[a.input_type] = by_type.get(a.input_type, 0) + 1

        return {
            "totalAnalyses": len(analyses),
            "total": items_total,
            "positive": sum(a.positive_count for a in analyses),
            "negative": sum(a.negative_count for a in analyses),
            "neutral": sum(a.neutral_count for a in analyses),
            "averageScore": round(weighted / items_total, 2) if items_total else 0,
            "byInputType": by_type,
            "period": {
                "startDate": start_date.isoformat() if start_date else None,
                "endDate": end_date.isoformat() if end_date else None,
            },
        }


def _owned_analysis_exists(session, analysis_id: str, user_id: str) -> bool:
    return (
        session.query(Analysis.id)
        .filter(Analysis.id == analysis_id, Analysis.user_id == user_id)
        .first()
        is not None
    )


def add_chat_message(analysis_id: str, user_id: str, role: str, content: str) -> Dict:
    if role not in CHAT_ROLES:
        raise AppError(f"Invalid chat role: {role}", 400)
    with get_session() as session:
        if not _owned_analysis_exists(session, analysis_id, user_id):
            raise AppError("Analysis not found", 404)
        message = ChatMessage(analysis_id=analysis_id, role=role, content=content)
        session.add(message)
        session.flush()
        return serialize_message(message)


def add_chat_turn(analysis_id: str, user_id: str, question: str, answer: str) -> List[Dict]:
    """Store a question and its answer together, or neither."""
    with get_session() as session:
        if not _owned_analysis_exists(session, analysis_id, user_id):
            raise AppError("Analysis not found", 404)
        asked_at = datetime.utcnow()
        # the answer must sort after the question
        answered_at = max(datetime.utcnow(), asked_at + timedelta(microseconds=1))
        messages = [
            ChatMessage(analysis_id=analysis_id, role="user", content=question, created_at=asked_at),
            ChatMessage(analysis_id=analysis_id, role="assistant", content=answer, created_at=answered_at),
        ]
        session.add_all(messages)
        session.flush()
        return [serialize_message(message) for message in messages]


def get_chat_history(analysis_id: str, user_id: str) -> List[Dict]:
    with get_session() as session:
        if not _owned_analysis_exists(session, analysis_id, user_id):
            raise AppError("Analysis not found", 404)
        rows = (
            session.query(ChatMessage)
            .filter(ChatMessage.analysis_id == analysis_id)
            .order_by(ChatMessage.created_at.asc())
            .all()
        )
        return [serialize_message(row) for row in rows]
