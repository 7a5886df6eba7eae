import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from sentiscope.dependencies import get_current_user
from sentiscope.errors import AppError
from sentiscope.services import analysis_service, dataset_service, sentiment_service
from sentiscope.services.sentiment_service import MAX_BATCH_SIZE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/datasets", tags=["Datasets"])

MAX_DATASET_ROWS = 500


class DatasetAnalyzePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    limit: int = Field(default=50, ge=1, le=MAX_BATCH_SIZE)
    offset: int = Field(default=0, ge=0)
    keywords: Optional[List[str]] = None
    save_to_db: bool = Field(default=False, alias="saveToDb")
    title: Optional[str] = None


class DatasetFetchPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    dataset_name: str = Field(alias="datasetName", min_length=1)
    config_name: str = Field(default="default", alias="config")
    split: str = "train"
    limit: int = Field(default=100, ge=1, le=MAX_DATASET_ROWS)
    offset: int = Field(default=0, ge=0)


@router.get("/tokopedia-reviews")
def get_tokopedia_reviews(
    limit: int = Query(100, ge=1, le=MAX_DATASET_ROWS),
    offset: int = Query(0, ge=0),
    user: dict = Depends(get_current_user),
):
    reviews = dataset_service.fetch_tokopedia_reviews(limit, offset)
    return {
        "success": True,
        "message": f"Fetched {len(reviews)} reviews",
        "data": {"reviews": reviews, "total": len(reviews), "limit": limit, "offset": offset},
    }


@router.post("/tokopedia-reviews/analyze")
async def analyze_tokopedia_reviews(payload: DatasetAnalyzePayload, user: dict = Depends(get_current_user)):
    reviews = await run_in_threadpool(dataset_service.fetch_tokopedia_reviews, payload.limit, payload.offset)
    if payload.keywords:
        reviews = dataset_service.filter_by_keywords(reviews, payload.keywords)
    if not reviews:
        raise AppError("No reviews matched the request", 404)

    results = await analysis_service.score_texts([r["text"] for r in reviews])
    for result, review in zip(results, reviews):
        result["originalLabel"] = review["originalLabel"]
        result["expectedSentiment"] = review["sentiment"]
        result["productName"] = review["productName"]

    comparable = [r for r in results if r["expectedSentiment"] and r["sentiment"]["label"] != sentiment_service.ERROR_LABEL]
    matches = sum(1 for r in comparable if r["expectedSentiment"] == r["sentiment"]["label"])
    accuracy = round(matches / len(comparable), 4) if comparable else None

    saved = None
    if payload.save_to_db:
        saved = await run_in_threadpool(
            analysis_service.persist,
            user_id=user["id"],
            title=payload.title or analysis_service.default_title("Tokopedia Dataset"),
            input_type="dataset",
            results=results,
        )
    logger.info("Analyzed %d Tokopedia reviews, accuracy %s", len(results), accuracy)
    return {
        "success": True,
        "message": f"Analyzed {len(results)} reviews",
        "data": analysis_service.build_response(results, saved=saved, accuracy=accuracy),
    }


@router.post("/fetch")
def fetch_dataset(payload: DatasetFetchPayload, user: dict = Depends(get_current_user)):
    items = dataset_service.fetch_dataset(
        payload.dataset_name, payload.config_name, payload.split, payload.limit, payload.offset
    )
    return {
        "success": True,
        "message": f"Fetched {len(items)} items from {payload.dataset_name}",
        "data": {"items": items, "total": len(items), "dataset": payload.dataset_name},
    }


@router.get("/info/{dataset_name:path}")
def dataset_info(dataset_name: str, user: dict = Depends(get_current_user)):
    info = dataset_service.get_dataset_info(dataset_name)
    return {"success": True, "message": "Dataset info retrieved", "data": info}
