"""
Generation Router — /generation

Thin HTTP surface over question_engine.
Endpoints:
  POST /generation/questions       — one subject's batch (exact MCQ/Numerical split)
  POST /generation/paper           — full paper, one batch per subject
  POST /generation/parse-document  — digitise an uploaded question paper
  POST /generation/hint            — one-sentence hint for a question
  POST /generation/analysis        — mentorship summary of an exam result
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, File, HTTPException, UploadFile, status

from question_engine import advisor, document_parser, orchestrator
from question_engine.errors import (
    AllAttemptsExhaustedError,
    ConfigurationError,
    GenerationFailedError,
    UnparseableResponseError,
    UpstreamError,
)
from question_engine.schemas import (
    AnalysisRequest,
    AnalysisResponse,
    DocumentParseResponse,
    GenerationRequest,
    HintRequest,
    HintResponse,
    PaperRequest,
    PaperResponse,
    SubjectQuestionsResponse,
)

router = APIRouter(prefix="/generation", tags=["generation"])

# Use Python's standard logger so output appears in the uvicorn console
log = logging.getLogger("generation.pipeline")
logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(levelname)s  %(message)s")

MAX_UPLOAD_BYTES = 20 * 1024 * 1024

MIME_TYPE_MAP = {
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}

UPSTREAM_FAILURES = (UnparseableResponseError, AllAttemptsExhaustedError, UpstreamError)


def _config_error(e: ConfigurationError) -> HTTPException:
    log.error(f"[CONFIG] {e}")
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


# ─── Single subject ────────────────────────────────────────────────────────────

@router.post("/questions", response_model=SubjectQuestionsResponse)
async def generate_questions(request: GenerationRequest):
    """
    Generate one subject's batch.

    The response always holds exactly `distribution.mcq` MCQs followed by
    `distribution.numerical` Numericals; model shortfall is padded with
    placeholder questions.
    """
    log.info(f"[QUESTIONS] subject={request.subject}, distribution={request.distribution}")
    try:
        questions = await orchestrator.generate_subject_questions(request)
    except ConfigurationError as e:
        raise _config_error(e)
    except UPSTREAM_FAILURES as e:
        log.error(f"[QUESTIONS] {request.subject} failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Question generation failed: {e}")

    return SubjectQuestionsResponse(subject=request.subject, count=len(questions), questions=questions)


# ─── Full paper ────────────────────────────────────────────────────────────────

@router.post("/paper", response_model=PaperResponse)
async def generate_paper(request: PaperRequest):
    """
    Generate a full paper: one batch per subject, run in sequence.

    A subject whose generation fails comes back as an empty list and is named
    in `failed_subjects`; the request only fails (502) when every subject does.
    """
    requests = request.to_requests()
    log.info("=" * 60)
    log.info(f"[PAPER START] subjects={[r.subject for r in requests]}, difficulty={request.difficulty}")

    try:
        papers = await orchestrator.generate_paper(requests)
    except ConfigurationError as e:
        raise _config_error(e)
    except GenerationFailedError as e:
        log.error(f"[PAPER] Total failure: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    failed = [
        r.subject for r in requests
        if r.distribution.total > 0 and not papers.get(r.subject)
    ]
    log.info(f"[PAPER DONE] failed_subjects={failed}")
    return PaperResponse(exam_type=request.exam_type, papers=papers, failed_subjects=failed)


# ─── Document ingestion ────────────────────────────────────────────────────────

async def _read_upload(upload: UploadFile) -> document_parser.DocumentFile:
    filename = (upload.filename or "").strip()
    extension = Path(filename).suffix.lower().lstrip(".")
    if extension not in MIME_TYPE_MAP:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type: .{extension}. Allowed: {', '.join(MIME_TYPE_MAP)}",
        )
    data = await upload.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{filename} is empty")
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"{filename} exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)} MB",
        )
    return document_parser.DocumentFile(
        filename=filename,
        content_type=MIME_TYPE_MAP[extension],
        data=data,
    )


@router.post("/parse-document", response_model=DocumentParseResponse)
async def parse_document(
    question_file: UploadFile = File(..., description="Question paper (PDF or image)"),
    solution_file: Optional[UploadFile] = File(None, description="Optional solutions (PDF or image)"),
):
    """Extract every question from an uploaded question paper."""
    question_doc = await _read_upload(question_file)
    solution_doc = await _read_upload(solution_file) if solution_file else None

    try:
        questions = await document_parser.parse_document(question_doc, solution_doc)
    except ConfigurationError as e:
        raise _config_error(e)
    except UPSTREAM_FAILURES as e:
        log.error(f"[DOC] Parsing {question_doc.filename} failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Document parsing failed: {e}")

    return DocumentParseResponse(count=len(questions), questions=questions)


# ─── Hints / analysis ──────────────────────────────────────────────────────────

@router.post("/hint", response_model=HintResponse)
async def quick_hint(request: HintRequest):
    try:
        hint = await advisor.get_quick_hint(request.statement, request.subject)
    except ConfigurationError as e:
        raise _config_error(e)
    return HintResponse(hint=hint)


@router.post("/analysis", response_model=AnalysisResponse)
async def deep_analysis(request: AnalysisRequest):
    try:
        analysis = await advisor.get_deep_analysis(request.result)
    except ConfigurationError as e:
        raise _config_error(e)
    return AnalysisResponse(analysis=analysis)
