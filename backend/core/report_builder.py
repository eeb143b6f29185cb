"""
report_builder.py — PDF and Excel report generation.

Generates:
- Student Report PDF (results table, scaled score chart, TE / ATAR range)
- Cohort Excel Export (one results sheet, ATAR summary sheet)

PDFs are A4, print-ready with a name / date footer.
"""

import io
from datetime import datetime
from typing import Any, Dict, List, Optional

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for server use
import matplotlib.pyplot as plt
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm, mm
from reportlab.platypus import (
    Image,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from core.models import ChartData


# ── Colour palette ──────────────────────────────────────────────────

BRAND_DARK  = colors.HexColor("#1a1a2e")
BRAND_ACCENT = colors.HexColor("#0f3460")
LIGHT_GREY  = colors.HexColor("#f5f5f5")
WHITE       = colors.white

MPL_RESULT = "#0f3460"
MPL_LOWER = "#9fb3c8"
MPL_UPPER = "#e94560"


# ── Helpers ─────────────────────────────────────────────────────────

def _fmt(value: Any, places: int = 1) -> str:
    if value is None:
        return "-"
    if isinstance(value, (int, float)):
        return f"{value:.{places}f}"
    return str(value)


def _footer(canvas, doc, title: str):
    """Draw report title and date in the page footer."""
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    canvas.setFillColor(colors.grey)
    footer_text = f"{title} — Generated {datetime.now().strftime('%d %B %Y, %H:%M')}"
    canvas.drawString(2 * cm, 1.2 * cm, footer_text)
    canvas.drawRightString(A4[0] - 2 * cm, 1.2 * cm, f"Page {doc.page}")
    canvas.restoreState()


def _chart_to_image(fig, width=14 * cm, height=8 * cm) -> Image:
    """Convert a matplotlib figure to a ReportLab Image."""
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=150, bbox_inches="tight")
    plt.close(fig)
    buf.seek(0)
    return Image(buf, width=width, height=height)


def _styles():
    """Return custom paragraph styles."""
    ss = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "CustomTitle", parent=ss["Title"],
            fontSize=22, leading=28, textColor=BRAND_DARK,
            spaceAfter=4 * mm,
        ),
        "subtitle": ParagraphStyle(
            "CustomSubtitle", parent=ss["Normal"],
            fontSize=13, leading=17, textColor=BRAND_ACCENT,
            spaceAfter=4 * mm,
        ),
        "heading": ParagraphStyle(
            "CustomHeading", parent=ss["Heading2"],
            fontSize=14, leading=18, textColor=BRAND_DARK,
            spaceBefore=6 * mm, spaceAfter=3 * mm,
        ),
        "body": ParagraphStyle(
            "CustomBody", parent=ss["Normal"],
            fontSize=10, leading=14, textColor=colors.black,
            spaceAfter=3 * mm,
        ),
        "center": ParagraphStyle(
            "CenterBody", parent=ss["Normal"],
            fontSize=10, leading=14, alignment=TA_CENTER,
        ),
    }


def _make_table(data: List[List], col_widths=None, header_color=BRAND_DARK):
    """Create a styled table."""
    style_cmds = [
        ("BACKGROUND", (0, 0), (-1, 0), header_color),
        ("TEXTCOLOR", (0, 0), (-1, 0), WHITE),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 9),
        ("FONTSIZE", (0, 1), (-1, -1), 8),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [WHITE, LIGHT_GREY]),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]
    t = Table(data, colWidths=col_widths, repeatRows=1)
    t.setStyle(TableStyle(style_cmds))
    return t


# ── Charts ──────────────────────────────────────────────────────────

def scaled_score_chart(chart: ChartData, range_mode: bool) -> Optional[Image]:
    """
    Horizontal stacked bar chart of scaled scores.
    The base segment is transparent so bars start at their lower bound.
    """
    if not chart.data:
        return None

    # Highest score at the top
    data = list(reversed(chart.data))
    labels = [d.subject for d in data]
    bases = [d.base for d in data]
    left = [chart.axis_min] * len(data)

    fig, ax = plt.subplots(figsize=(8, max(2.5, 0.5 * len(data) + 1)))
    if range_mode:
        middles = [d.middle or 0.0 for d in data]
        uppers = [d.upper or 0.0 for d in data]
        starts = [l + b for l, b in zip(left, bases)]
        ax.barh(labels, middles, left=starts, color=MPL_LOWER, label="Lower to result")
        starts = [s + m for s, m in zip(starts, middles)]
        ax.barh(labels, uppers, left=starts, color=MPL_UPPER, label="Result to upper")
        ax.legend(fontsize=8, loc="lower right", frameon=False)
    else:
        bars = ax.barh(labels, bases, left=left, color=MPL_RESULT)
        for bar, datum in zip(bars, data):
            ax.text(bar.get_x() + bar.get_width() + 0.3, bar.get_y() + bar.get_height() / 2,
                    f"{datum.middle_value:.1f}", va="center", fontsize=8, fontweight="bold")

    ax.set_xlim(chart.axis_min, chart.axis_max)
    ax.set_xlabel("Scaled Score", fontsize=10)
    ax.set_title("Scaled Scores by Subject", fontsize=12, fontweight="bold", pad=12)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    fig.tight_layout()
    return _chart_to_image(fig, width=15 * cm, height=max(5, 0.9 * len(data) + 2) * cm)


# ═══════════════════════════════════════════════════════════════════
# 1. STUDENT REPORT PDF
# ═══════════════════════════════════════════════════════════════════

def generate_student_report_pdf(
    output_path: str,
    student_name: str,
    export_rows: List[Dict[str, Any]],
    chart: ChartData,
    range_mode: bool,
    te_scores: Optional[Dict[str, Any]] = None,
    atar: Optional[Dict[str, Any]] = None,
    title: str = "Scaled Score Report",
):
    """Generate a one-student scaled score report PDF."""
    st = _styles()
    story = []

    story.append(Paragraph(title, st["title"]))
    story.append(Paragraph(student_name or "Student", st["subtitle"]))

    # ── Results table ───────────────────────────────────────────────
    story.append(Paragraph("Subject Results", st["heading"]))
    if range_mode:
        header = ["Subject", "Lower", "Result", "Upper", "Lower Scaled", "Scaled", "Upper Scaled"]
        body = [
            [r["subject"], _fmt(r["lower_result"]), _fmt(r["raw_result"]), _fmt(r["upper_result"]),
             _fmt(r["lower_scaled_score"]), _fmt(r["scaled_score"]), _fmt(r["upper_scaled_score"])]
            for r in export_rows
        ]
        widths = [5 * cm] + [1.9 * cm] * 6
    else:
        header = ["Subject", "Result", "Scaled Score"]
        body = [[r["subject"], _fmt(r["raw_result"]), _fmt(r["scaled_score"])] for r in export_rows]
        widths = [8 * cm, 3.5 * cm, 3.5 * cm]

    if body:
        story.append(_make_table([header] + body, col_widths=widths))
    else:
        story.append(Paragraph("No subject results entered.", st["body"]))

    # ── Chart ───────────────────────────────────────────────────────
    image = scaled_score_chart(chart, range_mode)
    if image is not None:
        story.append(Spacer(1, 4 * mm))
        story.append(image)

    # ── TE / ATAR ───────────────────────────────────────────────────
    if te_scores or atar:
        story.append(Paragraph("Estimated ATAR", st["heading"]))
        rows = [["Measure", "Lower", "Nominal", "Upper"]]
        if te_scores:
            rows.append(["TE Score", _fmt(te_scores.get("lower_te")), _fmt(te_scores.get("te")),
                         _fmt(te_scores.get("upper_te"))])
        if atar and atar.get("status") == "success":
            rows.append(["ATAR", _fmt(atar["lower_atar"], 2), _fmt(atar["nominal_atar"], 2),
                         _fmt(atar["upper_atar"], 2)])
        story.append(_make_table(rows, col_widths=[4 * cm, 3.5 * cm, 3.5 * cm, 3.5 * cm],
                                 header_color=BRAND_ACCENT))
        if atar and atar.get("status") != "success":
            story.append(Spacer(1, 3 * mm))
            story.append(Paragraph(str(atar.get("display", "N/A")), st["center"]))

    doc = SimpleDocTemplate(
        output_path, pagesize=A4,
        leftMargin=2 * cm, rightMargin=2 * cm,
        topMargin=2 * cm, bottomMargin=2.5 * cm,
    )
    doc.build(
        story,
        onFirstPage=lambda c, d: _footer(c, d, title),
        onLaterPages=lambda c, d: _footer(c, d, title),
    )


# ═══════════════════════════════════════════════════════════════════
# 2. COHORT EXCEL EXPORT
# ═══════════════════════════════════════════════════════════════════

RESULT_COLUMNS = [
    ("student", "Student"),
    ("subject", "Subject"),
    ("lower_result", "Lower Result"),
    ("raw_result", "Result"),
    ("upper_result", "Upper Result"),
    ("lower_scaled_score", "Lower Scaled"),
    ("scaled_score", "Scaled"),
    ("upper_scaled_score", "Upper Scaled"),
]

SUMMARY_COLUMNS = [
    ("student", "Student"),
    ("lower_te", "Lower TE"),
    ("te", "TE"),
    ("upper_te", "Upper TE"),
    ("atar", "ATAR Range"),
]


def generate_cohort_excel(output_path: str, summaries: List[Dict[str, Any]]):
    """Export cohort results and ATAR summaries to a formatted workbook."""
    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="1a1a2e", end_color="1a1a2e", fill_type="solid")
    grey_fill = PatternFill(start_color="f5f5f5", end_color="f5f5f5", fill_type="solid")
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )

    def _style_sheet(ws):
        """Apply formatting to a worksheet."""
        for cell in ws[1]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")
            cell.border = thin_border

        for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
            for cell in row:
                cell.border = thin_border
                cell.alignment = Alignment(horizontal="center")
                if cell.row % 2 == 1:
                    cell.fill = grey_fill

        ws.freeze_panes = "A2"

        # Auto-width columns
        for col_cells in ws.columns:
            max_len = max(len(str(cell.value or "")) for cell in col_cells)
            ws.column_dimensions[col_cells[0].column_letter].width = min(max_len + 4, 40)

    wb = Workbook()

    # ── Sheet 1: Results ────────────────────────────────────────────
    ws_results = wb.active
    ws_results.title = "Results"
    ws_results.sheet_properties.tabColor = "1a1a2e"
    ws_results.append([label for _, label in RESULT_COLUMNS])
    for summary in summaries:
        for record in summary["results"]:
            values = dict(record, student=summary["student"])
            ws_results.append([values.get(key) for key, _ in RESULT_COLUMNS])
    _style_sheet(ws_results)

    # ── Sheet 2: ATAR Summary ───────────────────────────────────────
    ws_summary = wb.create_sheet("ATAR Summary")
    ws_summary.sheet_properties.tabColor = "0f3460"
    ws_summary.append([label for _, label in SUMMARY_COLUMNS])
    for summary in summaries:
        ws_summary.append([
            summary["student"],
            summary["lower_te"],
            summary["te"],
            summary["upper_te"],
            summary["atar"]["display"],
        ])
    _style_sheet(ws_summary)

    wb.save(output_path)
