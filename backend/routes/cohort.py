"""
Cohort routes — rank a student's results and summarise an uploaded cohort.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile

from core.cohort import rank_by_subject_results, summarise_cohort, summary_to_dict
from core.parser import parse_upload, results_by_student, validate_data
from routes.context import (
    default_variation,
    get_lookup,
    get_oracle,
    results_from,
    variation_from,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_EXTENSIONS = (".csv", ".xlsx", ".xls", ".ods")


@router.post("/rank")
async def rank(payload: dict, request: Request):
    """
    Rank one student's results by scaled score.
    Expects: { "results": [{"subject": "Biology", "raw_result": "75"}, ...], "variation": 3 }
    """
    results = results_from(payload.get("results"))
    if not results:
        raise HTTPException(400, "No results provided.")
    rows = rank_by_subject_results(
        results, variation_from(payload), get_lookup(request), get_oracle(request),
    )
    return {"rows": [r.to_dict() for r in rows]}


@router.post("/summary")
async def summary(payload: dict, request: Request):
    """
    TE and ATAR range per student.
    Expects: { "students": {"Alice": [{"subject": ..., "raw_result": ...}]}, "variation": 3 }
    """
    students = payload.get("students")
    if not students or not isinstance(students, dict):
        raise HTTPException(400, "No students provided.")
    grouped = {name: results_from(items) for name, items in students.items()}
    summaries = summarise_cohort(
        grouped, variation_from(payload), get_lookup(request), get_oracle(request),
    )
    return {"students": [summary_to_dict(s) for s in summaries]}


@router.post("/upload")
async def upload_cohort(
    request: Request,
    file: UploadFile = File(...),
    variation: Optional[float] = Form(None),
):
    """
    Upload a CSV, Excel, or ODS file of student results and summarise it.
    The file is parsed from a temporary copy that is removed afterwards.
    """
    ext = Path(file.filename or "").suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(400, f"Unsupported file type: {ext}. Use CSV, Excel, or ODS.")

    fd, tmp_path = tempfile.mkstemp(suffix=ext)
    try:
        with os.fdopen(fd, "wb") as f:
            while True:
                chunk = await file.read(1024 * 1024)
                if not chunk:
                    break
                f.write(chunk)

        sheets = parse_upload(tmp_path)
        df = sheets[list(sheets.keys())[0]]
        issues = validate_data(df)
        if any(i["severity"] == "critical" for i in issues):
            raise HTTPException(400, {"message": "Upload failed validation.", "issues": issues})
        grouped = results_by_student(df)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(400, f"Failed to process upload '{file.filename}': {str(e)}")
    finally:
        Path(tmp_path).unlink(missing_ok=True)

    logger.info("Summarising %d students from %s", len(grouped), file.filename)
    if variation is None:
        variation = default_variation()
    summaries = summarise_cohort(grouped, variation, get_lookup(request), get_oracle(request))
    return {
        "filename": file.filename,
        "issues": issues,
        "students": [summary_to_dict(s) for s in summaries],
    }
