from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from sentiscope.dependencies import get_current_user
from sentiscope.errors import AppError
from sentiscope.services import analysis_db_service, analysis_service, openai_service, sentiment_service, storage_service
from sentiscope.services.sentiment_service import MAX_BATCH_SIZE

router = APIRouter(prefix="/api/analysis", tags=["Analysis"])


class AnalyzePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(min_length=1)
    save_to_db: bool = Field(default=True, alias="saveToDb")
    title: Optional[str] = None


class BatchPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    texts: List[str] = Field(min_length=1, max_length=MAX_BATCH_SIZE)
    save_to_db: bool = Field(default=True, alias="saveToDb")
    title: Optional[str] = None


class KeywordsPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    keywords: List[str] = Field(min_length=1, max_length=MAX_BATCH_SIZE)
    save_to_db: bool = Field(default=True, alias="saveToDb")
    title: Optional[str] = None


class DeepPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = None
    texts: Optional[List[str]] = Field(default=None, max_length=MAX_BATCH_SIZE)
    save_to_db: bool = Field(default=True, alias="saveToDb")
    title: Optional[str] = None
    generate_insights: bool = Field(default=True, alias="generateInsights")


class ExplainPayload(BaseModel):
    text: str = Field(min_length=1)
    sentiment: str = Field(min_length=1)
    score: float = Field(ge=0, le=1)


class ChatPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1)
    context: Optional[Dict[str, Any]] = None
    analysis_id: Optional[str] = Field(default=None, alias="analysisId")


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # stored timestamps are naive UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _save_if_requested(user: dict, payload, input_type: str, kind: str, results: List[Dict]):
    if not payload.save_to_db:
        return None
    return analysis_service.persist(
        user_id=user["id"],
        title=payload.title or analysis_service.default_title(kind),
        input_type=input_type,
        results=results,
    )


@router.post("/analyze", status_code=201)
def analyze_text(payload: AnalyzePayload, user: dict = Depends(get_current_user)):
    result = sentiment_service.analyze_single_text(payload.text)
    saved = _save_if_requested(user, payload, "text", "Text", [result])
    data = analysis_service.build_response([result], saved=saved, result=result)
    return {"success": True, "message": "Analysis completed successfully", "data": data}


@router.post("/batch")
def analyze_batch(payload: BatchPayload, user: dict = Depends(get_current_user)):
    results = sentiment_service.analyze_batch_texts(payload.texts)
    saved = _save_if_requested(user, payload, "batch", "Batch", results)
    return {
        "success": True,
        "message": f"Analyzed {len(results)} texts",
        "data": analysis_service.build_response(results, saved=saved),
    }


@router.post("/keywords")
def analyze_keywords(payload: KeywordsPayload, user: dict = Depends(get_current_user)):
    results = sentiment_service.analyze_batch_texts(payload.keywords)
    saved = _save_if_requested(user, payload, "keywords", "Keyword", results)
    return {
        "success": True,
        "message": f"Analyzed {len(results)} keywords",
        "data": analysis_service.build_response(results, saved=saved),
    }


@router.post("/deep")
async def analyze_deep(payload: DeepPayload, user: dict = Depends(get_current_user)):
    texts = list(payload.texts or [])
    if payload.text:
        texts.insert(0, payload.text)
    if not texts:
        raise AppError("Provide text or texts to analyze", 400)

    results = await analysis_service.score_texts(texts, deep=True)
    statistics = sentiment_service.get_sentiment_statistics(results)
    insights = await analysis_service.maybe_generate_insights(results, statistics, payload.generate_insights)

    input_type = "text" if len(results) == 1 else "batch"
    saved = None
    if payload.save_to_db:
        saved = await run_in_threadpool(
            analysis_service.persist,
            user_id=user["id"],
            title=payload.title or analysis_service.default_title("Deep"),
            input_type=input_type,
            results=results,
            ai_insights=insights,
        )
    return {
        "success": True,
        "message": "Deep analysis completed successfully",
        "data": analysis_service.build_response(results, insights, saved),
    }


@router.post("/explain")
async def explain(payload: ExplainPayload, user: dict = Depends(get_current_user)):
    explanation = await openai_service.explain_sentiment(payload.text, payload.sentiment, payload.score)
    return {"success": True, "message": "Explanation generated", "data": {"explanation": explanation}}


@router.get("/history")
def get_history(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: dict = Depends(get_current_user),
):
    analyses = analysis_db_service.get_user_analyses(user["id"], limit, offset)
    total = analysis_db_service.get_user_analysis_count(user["id"])
    return {
        "success": True,
        "message": "History retrieved successfully",
        "data": {"analyses": analyses, "total": total, "limit": limit, "offset": offset},
    }


@router.get("/history/{analysis_id}")
def get_analysis(analysis_id: str, user: dict = Depends(get_current_user)):
    analysis = analysis_db_service.get_analysis_by_id(analysis_id, user["id"])
    if not analysis:
        raise AppError("Analysis not found", 404)
    if analysis["filePath"]:
        analysis["signedUrl"] = storage_service.get_signed_url(analysis["filePath"])
    return {"success": True, "message": "Analysis retrieved successfully", "data": analysis}


@router.delete("/history/{analysis_id}")
def delete_analysis(analysis_id: str, user: dict = Depends(get_current_user)):
    analysis_db_service.delete_analysis(analysis_id, user["id"])
    return {"success": True, "message": "Analysis deleted successfully"}


@router.get("/reports")
def get_reports(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user: dict = Depends(get_current_user),
):
    start_date, end_date = _naive_utc(start_date), _naive_utc(end_date)
    if start_date and end_date and start_date > end_date:
        raise AppError("startDate must be before endDate", 400)
    reports = analysis_db_service.get_reports(user["id"], start_date, end_date)
    return {"success": True, "message": "Reports retrieved successfully", "data": reports}


@router.get("/{analysis_id}/chat")
def get_chat_history(analysis_id: str, user: dict = Depends(get_current_user)):
    messages = analysis_db_service.get_chat_history(analysis_id, user["id"])
    return {"success": True, "message": "Chat history retrieved successfully", "data": {"messages": messages}}


@router.post("/chat")
async def chat(payload: ChatPayload, user: dict = Depends(get_current_user)):
    context = payload.context or {}
    history: List[Dict] = []

    if payload.analysis_id:
        analysis = await run_in_threadpool(analysis_db_service.get_analysis_by_id, payload.analysis_id, user["id"])
        if not analysis:
            raise AppError("Analysis not found", 404)
        if not payload.context:
            context = analysis_service.chat_context_from_analysis(analysis)
        history = await run_in_threadpool(analysis_db_service.get_chat_history, payload.analysis_id, user["id"])
    elif not context:
        raise AppError("Provide analysisId or context for the chat", 400)

    response = await openai_service.chat_about_analysis(payload.message, context, history)

    if payload.analysis_id:
        await run_in_threadpool(
            analysis_db_service.add_chat_turn, payload.analysis_id, user["id"], payload.message, response
        )
    return {"success": True, "message": "Chat response generated", "data": {"response": response}}
