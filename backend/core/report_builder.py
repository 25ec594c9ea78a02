"""
report_builder.py — Report card (boleta) PDF generation.

The transcript is described as plain layout data first (TableLayout: rows,
column widths, style commands) and only then handed to ReportLab, so the
grid contents can be inspected without drawing anything.

Layout (US Letter, single page for a normal subject list):
  header, student/course block, grade grid with PROMEDIOS and PERDIDAS rows,
  legend, two signatures, footer with generation date and page number.

The builder never computes grades; it formats what the caller passes in.
"""

import io
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm, mm
from reportlab.platypus import (
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from core.errors import NotFoundError
from core.grading_policy import GradingPolicy, format_grade_label


# ── Colour palette ──────────────────────────────────────────────────

BRAND_DARK  = colors.HexColor("#1a1a2e")
LIGHT_GREY  = colors.HexColor("#f5f5f5")
SUMMARY_BG  = colors.HexColor("#e5e7eb")
FAIL_TEXT   = colors.HexColor("#b91c1c")
GRID_LINE   = colors.HexColor("#9ca3af")
WHITE       = colors.white

EMPTY_CELL = "-"
SUBJECT_COL_WIDTH = 6.4 * cm
PERIOD_COL_WIDTH = 1.95 * cm
CUMULATIVE_COL_WIDTH = 2.5 * cm


@dataclass
class TableLayout:
    """A table described as data: cell text, widths and TableStyle commands."""

    rows: List[List[str]]
    col_widths: List[float]
    style: List[tuple] = field(default_factory=list)
    row_heights: Optional[List[float]] = None


# ── Helpers ─────────────────────────────────────────────────────────

def format_score(value: Optional[float]) -> str:
    """80.0 -> '80', 37.5 -> '37.5', None -> '-'."""
    if value is None:
        return EMPTY_CELL
    return f"{float(value):g}"


def transcript_filename(student: Dict[str, Any], cycle: int) -> str:
    token = student.get("code") or str(student.get("_id", "student"))
    return f"boleta_{token}_{cycle}.pdf"


def _footer(canvas, doc, school_name: str):
    """Draw generation date, school name and page number in the footer."""
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    canvas.setFillColor(colors.grey)
    footer_text = f"Generado el: {datetime.now().strftime('%d/%m/%Y')} - Sistema Educativo {school_name.title()}"
    canvas.drawCentredString(LETTER[0] / 2, 1.2 * cm, footer_text)
    canvas.drawRightString(LETTER[0] - 2 * cm, 1.2 * cm, f"Página {doc.page}")
    canvas.restoreState()


def _styles():
    ss = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "SchoolTitle", parent=ss["Title"],
            fontSize=20, leading=24, textColor=BRAND_DARK, spaceAfter=1 * mm,
        ),
        "subtitle": ParagraphStyle(
            "SchoolSubtitle", parent=ss["Normal"],
            fontSize=10, leading=12, alignment=TA_CENTER, spaceAfter=3 * mm,
        ),
        "heading": ParagraphStyle(
            "DocHeading", parent=ss["Heading2"],
            fontSize=16, leading=20, alignment=TA_CENTER, textColor=BRAND_DARK,
            spaceAfter=5 * mm,
        ),
        "small": ParagraphStyle(
            "Legend", parent=ss["Normal"],
            fontSize=9, leading=12,
        ),
    }


# ── Layout builders ─────────────────────────────────────────────────

def build_identity_layout(student: Dict[str, Any], course: Dict[str, Any], cycle: int) -> TableLayout:
    grade = format_grade_label(course.get("grade"))
    rows = [
        ["Nombre:", f"{student.get('name', '')} {student.get('surname', '')}".strip()],
        ["Código:", student.get("code") or "N/A"],
        ["Grado:", f"{grade} \"{course.get('section') or 'A'}\""],
        ["Jornada:", course.get("shift") or "MATUTINA"],
        ["Ciclo Escolar:", str(cycle)],
    ]
    return TableLayout(
        rows=rows,
        col_widths=[3.5 * cm, 12 * cm],
        style=[
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("FONTNAME", (1, 0), (1, -1), "Helvetica"),
            ("FONTSIZE", (0, 0), (-1, -1), 11),
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
        ],
    )


def build_grade_grid(
    rows: List[Dict[str, Any]],
    period_stats: Dict[str, Any],
    overall_accumulated: float,
    passing_score: int,
    policy: GradingPolicy,
) -> TableLayout:
    """
    Grid of subject rows plus the PROMEDIOS and PERDIDAS class rows.

    rows are accumulated subject rows (periods + cumulative); period_stats
    comes from stats.compute_period_statistics.
    """
    periods = policy.period_numbers
    header = ["MATERIA"] + [f"B{p}" for p in periods] + ["ACUMULADO"]
    data = [header]
    style = [
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_DARK),
        ("TEXTCOLOR", (0, 0), (-1, 0), WHITE),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 10),
        ("FONTSIZE", (0, 1), (-1, -1), 9),
        ("ALIGN", (1, 0), (-1, -1), "CENTER"),
        ("ALIGN", (0, 0), (0, -1), "LEFT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.6, GRID_LINE),
        ("TOPPADDING", (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
    ]

    for idx, row in enumerate(rows, start=1):
        cells = [format_score(row["periods"].get(p)) for p in periods]
        data.append([row["subject"]] + cells + [format_score(row.get("cumulative"))])
        if idx % 2 == 0:
            style.append(("BACKGROUND", (0, idx), (-1, idx), LIGHT_GREY))
        for col, p in enumerate(periods, start=1):
            value = row["periods"].get(p)
            if value is not None and value < passing_score:
                style.append(("TEXTCOLOR", (col, idx), (col, idx), FAIL_TEXT))

    stats_by_period = period_stats.get("periods", {})
    averages = [format_score(stats_by_period.get(p, {}).get("average")) for p in periods]
    failing = [str(stats_by_period.get(p, {}).get("failing", 0)) for p in periods]
    data.append(["PROMEDIOS"] + averages + [format_score(overall_accumulated)])
    data.append(["PERDIDAS"] + failing + [""])

    style.extend([
        ("BACKGROUND", (0, -2), (-1, -1), SUMMARY_BG),
        ("FONTNAME", (0, -2), (-1, -1), "Helvetica-Bold"),
    ])

    col_widths = [SUBJECT_COL_WIDTH] + [PERIOD_COL_WIDTH] * len(periods) + [CUMULATIVE_COL_WIDTH]
    return TableLayout(rows=data, col_widths=col_widths, style=style)


def legend_lines(passing_score: int, policy: GradingPolicy) -> List[str]:
    labels = ", ".join(f"B{p}" for p in policy.period_numbers)
    return [
        f"Nota mínima de aprobación: {passing_score} puntos",
        f"ACUMULADO = Suma de puntos por bimestre (cada uno vale {policy.points_per_period:g} pts, "
        f"máx {policy.max_score:g})",
        f"{labels} = Bimestres 1 a {policy.periods}",
    ]


def build_signature_layout() -> TableLayout:
    return TableLayout(
        rows=[["", "", ""], ["Coordinación", "", "Director(a)"]],
        col_widths=[5.5 * cm, 4 * cm, 5.5 * cm],
        row_heights=[2.2 * cm, 0.6 * cm],
        style=[
            ("LINEBELOW", (0, 0), (0, 0), 0.8, colors.black),
            ("LINEBELOW", (2, 0), (2, 0), 0.8, colors.black),
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ("VALIGN", (0, 1), (-1, 1), "TOP"),
            ("FONTSIZE", (0, 0), (-1, -1), 10),
        ],
    )


# ── Rendering ───────────────────────────────────────────────────────

def render_table(layout: TableLayout, repeat_header: bool = False) -> Table:
    """Generic TableLayout -> ReportLab Table."""
    table = Table(
        layout.rows,
        colWidths=layout.col_widths,
        rowHeights=layout.row_heights,
        repeatRows=1 if repeat_header else 0,
        hAlign="LEFT",
    )
    table.setStyle(TableStyle(layout.style))
    return table


def generate_transcript_pdf(
    school_name: str,
    student: Optional[Dict[str, Any]],
    course: Optional[Dict[str, Any]],
    cycle: int,
    rows: List[Dict[str, Any]],
    period_stats: Dict[str, Any],
    overall_accumulated: float,
    passing_score: int,
    policy: GradingPolicy,
) -> bytes:
    """Render the report card and return the PDF bytes."""
    if not student:
        raise NotFoundError("Student not found")
    if not course:
        raise NotFoundError("The student has no course for this school cycle")

    st = _styles()
    story = []

    # ── Header ──────────────────────────────────────────────────────
    story.append(Paragraph(escape(school_name), st["title"]))
    story.append(Paragraph("Centro Educativo", st["subtitle"]))
    story.append(Paragraph("BOLETA DE CALIFICACIONES", st["heading"]))

    # ── Student / course block ──────────────────────────────────────
    story.append(render_table(build_identity_layout(student, course, cycle)))
    story.append(Spacer(1, 6 * mm))

    # ── Grade grid ──────────────────────────────────────────────────
    grid = build_grade_grid(rows, period_stats, overall_accumulated, passing_score, policy)
    story.append(render_table(grid, repeat_header=True))
    story.append(Spacer(1, 8 * mm))

    # ── Legend ──────────────────────────────────────────────────────
    for line in legend_lines(passing_score, policy):
        story.append(Paragraph(escape(line), st["small"]))
    story.append(Spacer(1, 1.5 * cm))

    # ── Signatures ──────────────────────────────────────────────────
    story.append(render_table(build_signature_layout()))

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=LETTER,
        leftMargin=2 * cm, rightMargin=2 * cm,
        topMargin=1.8 * cm, bottomMargin=2.5 * cm,
        title=f"Boleta {cycle}",
    )

    def _page_decor(c, d):
        _footer(c, d, school_name)

    doc.build(story, onFirstPage=_page_decor, onLaterPages=_page_decor)
    return buffer.getvalue()
