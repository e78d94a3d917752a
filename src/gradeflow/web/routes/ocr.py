"""OCR text extraction endpoint."""

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from gradeflow.core.errors import classify_error
from gradeflow.core.ocr_parsing import (
    detect_exam_id,
    detect_student_id,
    extract_questions_from_text,
)
from gradeflow.ocr.vision_client import VisionClient
from gradeflow.web.dependencies import get_vision_client
from gradeflow.web.schemas import ExtractTextRequestBody

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["ocr"])


@router.post("/extract-text", response_model=None)
async def extract_text(
    body: ExtractTextRequestBody,
    vision: VisionClient = Depends(get_vision_client),
) -> dict[str, Any] | JSONResponse:
    """OCR a scanned page and detect exam ID, student ID and answers."""
    try:
        ocr = await vision.extract_text(body.file_content)
    except Exception as e:
        info = classify_error(e, default_message="Text extraction failed.")
        logger.error("text_extraction_failed", file_name=body.file_name, error=info.details)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                **info.to_envelope(),
                "success": False,
                "extractedText": "",
                "examId": None,
                "studentId": None,
                "structuredData": None,
            },
        )

    student = detect_student_id(ocr.text, body.file_name)
    questions = extract_questions_from_text(ocr.text)
    exam_id = detect_exam_id(ocr.text, body.file_name)

    logger.info(
        "text_extracted",
        file_name=body.file_name,
        exam_id=exam_id,
        student_id_method=student.method,
        questions=len(questions),
    )

    structured = {
        "examId": exam_id,
        "detectedStudentId": student.detected_id,
        "studentIdConfidence": student.confidence,
        "studentIdDetectionMethod": student.method,
        "questions": [q.to_dict() for q in questions],
        "metadata": {
            "totalQuestions": len(questions),
            "ocrConfidence": ocr.confidence,
            "hasStudentId": student.detected_id is not None,
            "processingTimestamp": datetime.now(timezone.utc).isoformat(),
        },
    }

    return {
        "success": True,
        "extractedText": ocr.text,
        "examId": exam_id,
        "studentId": student.detected_id,
        "fileName": body.file_name,
        "structuredData": structured,
        "confidence": ocr.confidence,
    }
