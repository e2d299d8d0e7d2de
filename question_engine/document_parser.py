"""
Document Ingestion — question paper (and optional solution file) → Question[]

Same Dispatcher / Sanitizer contract as batch generation, but the prompt is
a list of multimodal content parts carrying the raw file bytes:
  - images  → image_url part with a base64 data URL
  - others  → file part (PDF etc.) with base64 file_data

No quotas apply: every question the model extracts is returned, coerced with
the same rules as generated items.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from question_engine import sanitizer
from question_engine.dispatcher import Dispatcher, get_dispatcher
from question_engine.errors import UnparseableResponseError
from question_engine.prompt_composer import DOCUMENT_PROMPT
from question_engine.quota import QuestionItem, coerce_items

log = logging.getLogger("generation.pipeline")


@dataclass
class DocumentFile:
    filename: str
    content_type: str
    data: bytes


def _data_url(doc: DocumentFile) -> str:
    encoded = base64.b64encode(doc.data).decode("utf-8")
    return f"data:{doc.content_type};base64,{encoded}"


def build_content_part(doc: DocumentFile) -> Dict[str, Any]:
    if doc.content_type.startswith("image/"):
        return {"type": "image_url", "image_url": {"url": _data_url(doc)}}
    return {
        "type": "file",
        "file": {"filename": doc.filename, "file_data": _data_url(doc)},
    }


def build_document_prompt(question_file: DocumentFile, solution_file: Optional[DocumentFile] = None) -> List[Dict[str, Any]]:
    parts = [build_content_part(question_file)]
    if solution_file is not None:
        parts.append(build_content_part(solution_file))
    parts.append({"type": "text", "text": DOCUMENT_PROMPT})
    return parts


async def parse_document(
    question_file: DocumentFile,
    solution_file: Optional[DocumentFile] = None,
    default_subject: str = "Physics",
    dispatcher: Optional[Dispatcher] = None,
) -> List[QuestionItem]:
    """
    Digitise the questions in an uploaded document.

    Raises:
        UnparseableResponseError: the reply held no parseable questions
        AllAttemptsExhaustedError / UnknownUpstreamError: dispatch failed
    """
    if not question_file.data:
        raise ValueError("Uploaded question file is empty.")

    dispatcher = dispatcher or get_dispatcher()
    log.info(
        f"[DOC] Parsing {question_file.filename} ({len(question_file.data)} bytes)"
        + (f" with solutions {solution_file.filename}" if solution_file else "")
    )

    raw_text = await dispatcher.dispatch(
        build_document_prompt(question_file, solution_file),
        json_mode=True,
    )
    raw_items = sanitizer.parse(raw_text)
    if raw_items is None:
        raise UnparseableResponseError("Document parser response was not a question array", raw_text)

    questions = coerce_items(raw_items, default_subject)
    if not questions:
        raise UnparseableResponseError("No questions could be extracted from the document", raw_text)

    log.info(f"[DOC] Extracted {len(questions)} question(s) from {question_file.filename}")
    return questions
