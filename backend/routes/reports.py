"""
Report routes — PDF and Excel report generation endpoints.
"""

import re
import uuid
from pathlib import Path

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from core.atar import atar_range, student_te_scores
from core.chart import prepare_chart
from core.cohort import scale_rows, summarise_cohort
from core.export import project_for_export
from core.report_builder import generate_cohort_excel, generate_student_report_pdf
from routes.context import get_lookup, get_oracle, results_from, rows_from, variation_from

router = APIRouter()

REPORTS_DIR = Path(__file__).resolve().parent.parent / "uploads" / "reports"
REPORTS_DIR.mkdir(parents=True, exist_ok=True)


def _safe_token(value: str, fallback: str = "item") -> str:
    """Create filesystem-safe token for filenames."""
    token = re.sub(r"[^A-Za-z0-9._-]+", "_", str(value)).strip("._-")
    return token or fallback


def _safe_unlink(path: str):
    """Delete the generated file after the response is sent."""
    Path(path).unlink(missing_ok=True)


@router.post("/student-pdf")
async def student_report_pdf(payload: dict, request: Request):
    """
    Generate a single-student scaled score report.
    Expects: { "student_name": "...", "rows": [...], "range_mode": true }
    """
    lookup = get_lookup(request)
    oracle = get_oracle(request)
    rows = rows_from(payload)
    if not any(r.subject for r in rows):
        raise HTTPException(400, "No subject rows provided.")

    student_name = str(payload.get("student_name") or "Student")
    range_mode = bool(payload.get("range_mode", False))

    scaled_by_id, subject_scores = scale_rows(rows, lookup, oracle)
    export_rows = project_for_export(rows, scaled_by_id, range_mode)
    chart = prepare_chart(rows, range_mode, lookup, oracle)
    te_scores = student_te_scores(subject_scores)
    atar = atar_range(te_scores["te"], te_scores["lower_te"], te_scores["upper_te"])

    report_id = str(uuid.uuid4())[:8]
    output_path = REPORTS_DIR / f"student_report_{report_id}.pdf"
    generate_student_report_pdf(
        output_path=str(output_path),
        student_name=student_name,
        export_rows=export_rows,
        chart=chart,
        range_mode=range_mode,
        te_scores=te_scores,
        atar=atar,
    )

    return FileResponse(
        str(output_path),
        media_type="application/pdf",
        filename=f"Scaled_Score_Report_{_safe_token(student_name, 'student')}.pdf",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )


@router.post("/cohort-excel")
async def cohort_excel(payload: dict, request: Request):
    """
    Export cohort results and ATAR ranges to Excel.
    Expects: { "students": {"Alice": [{"subject": ..., "raw_result": ...}]}, "variation": 3 }
    """
    students = payload.get("students")
    if not students or not isinstance(students, dict):
        raise HTTPException(400, "No students provided.")

    grouped = {name: results_from(items) for name, items in students.items()}
    summaries = summarise_cohort(
        grouped, variation_from(payload), get_lookup(request), get_oracle(request),
    )

    report_id = str(uuid.uuid4())[:8]
    output_path = REPORTS_DIR / f"cohort_{report_id}.xlsx"
    generate_cohort_excel(str(output_path), summaries)

    return FileResponse(
        str(output_path),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=f"Cohort_Scaled_Scores_{report_id}.xlsx",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )
