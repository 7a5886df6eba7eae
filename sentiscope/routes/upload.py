import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from starlette.concurrency import run_in_threadpool

from sentiscope.dependencies import get_current_user
from sentiscope.errors import AppError
from sentiscope.services import (
    analysis_service,
    csv_service,
    ocr_service,
    openai_service,
    sentiment_service,
    storage_service,
    upload_service,
)
from sentiscope.services.sentiment_service import MAX_BATCH_SIZE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analysis", tags=["Upload"])


async def _finish(
    *,
    user: dict,
    kind: str,
    temp_path: str,
    filename: str,
    results: List[Dict],
    save_to_db: bool,
    title: Optional[str],
    generate_insights: bool,
) -> Dict:
    statistics = sentiment_service.get_sentiment_statistics(results)
    insights = await analysis_service.maybe_generate_insights(results, statistics, generate_insights)

    saved = None
    stored = None
    if save_to_db:
        stored = await run_in_threadpool(storage_service.upload_file, temp_path, filename, user["id"], kind)
        saved = await run_in_threadpool(
            analysis_service.persist,
            user_id=user["id"],
            title=title or analysis_service.default_title(kind.upper() if kind == "csv" else "Image"),
            input_type=kind,
            results=results,
            file_path=stored["path"] if stored else None,
            file_url=stored["url"] if stored else None,
            ai_insights=insights,
        )
    return {
        "insights": insights,
        "saved": saved,
        "fileUrl": stored["url"] if stored else None,
    }


@router.post("/csv")
async def analyze_csv(
    file: UploadFile = File(...),
    save_to_db: bool = Form(True, alias="saveToDb"),
    title: Optional[str] = Form(None),
    column: Optional[str] = Form(None),
    deep_analysis: bool = Form(False, alias="deepAnalysis"),
    generate_insights: bool = Form(True, alias="generateInsights"),
    user: dict = Depends(get_current_user),
):
    contents = await upload_service.read_upload(file)
    ext = upload_service.validate_upload(file.filename, len(contents), "csv")

    with upload_service.temp_upload(contents, "csv", ext) as temp_path:
        columns, rows = await run_in_threadpool(csv_service.read_rows, temp_path)
        if not rows:
            raise AppError("CSV file has no data rows", 400)
        text_column = await csv_service.find_text_column(columns, rows, column)
        texts = csv_service.extract_texts(rows, text_column, MAX_BATCH_SIZE)
        if not texts:
            raise AppError(f"No text found in column '{text_column}'", 400)
        logger.info("CSV %s: analyzing %d texts from column %r", file.filename, len(texts), text_column)

        results = await analysis_service.score_texts(texts, deep=deep_analysis)
        outcome = await _finish(
            user=user,
            kind="csv",
            temp_path=temp_path,
            filename=file.filename,
            results=results,
            save_to_db=save_to_db,
            title=title,
            generate_insights=generate_insights,
        )

    data = analysis_service.build_response(
        results,
        outcome["insights"],
        outcome["saved"],
        column=text_column,
        columns=columns,
        totalRows=len(rows),
        fileUrl=outcome["fileUrl"],
    )
    return {"success": True, "message": f"Analyzed {len(results)} rows from CSV", "data": data}


@router.post("/image")
async def analyze_image(
    file: UploadFile = File(...),
    save_to_db: bool = Form(True, alias="saveToDb"),
    title: Optional[str] = Form(None),
    parse_comments: bool = Form(True, alias="parseComments"),
    deep_analysis: bool = Form(False, alias="deepAnalysis"),
    generate_insights: bool = Form(True, alias="generateInsights"),
    user: dict = Depends(get_current_user),
):
    contents = await upload_service.read_upload(file)
    ext = upload_service.validate_upload(file.filename, len(contents), "image")

    with upload_service.temp_upload(contents, "image", ext) as temp_path:
        ocr_text = await run_in_threadpool(ocr_service.extract_text, temp_path)
        if not ocr_text:
            raise AppError("No text found in image", 400)

        comments: List[Dict] = []
        if parse_comments and openai_service.is_available():
            try:
                comments = await openai_service.parse_comments_from_ocr(ocr_text)
            except AppError as exc:
                logger.warning("Comment parsing failed, splitting OCR lines instead: %s", exc.message)

        if comments:
            texts = [c["comment"] for c in comments]
        else:
            texts = ocr_service.split_lines(ocr_text)
        if not texts:
            raise AppError("No text found in image", 400)
        texts = texts[:MAX_BATCH_SIZE]

        results = await analysis_service.score_texts(texts, deep=deep_analysis)
        # attach author metadata when the texts came from parsed comments
        if comments and len(results) == len(texts):
            for result, comment in zip(results, comments):
                result["username"] = comment["username"]
                result["timestamp"] = comment["timestamp"]

        outcome = await _finish(
            user=user,
            kind="image",
            temp_path=temp_path,
            filename=file.filename,
            results=results,
            save_to_db=save_to_db,
            title=title,
            generate_insights=generate_insights,
        )

    data = analysis_service.build_response(
        results,
        outcome["insights"],
        outcome["saved"],
        extractedText=ocr_text,
        commentsParsed=bool(comments),
        fileUrl=outcome["fileUrl"],
    )
    return {"success": True, "message": f"Analyzed {len(results)} texts from image", "data": data}
