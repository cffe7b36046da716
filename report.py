# report.py
from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Iterable

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from domain import Shift, ShiftType, ShiftVariable
from services import period_shifts, summarize_period
from utils import format_currency, month_label, shifts_to_dataframe

logger = logging.getLogger(__name__)

PRINT_COLUMNS = ["Fecha", "Horario (Teórico / Real)", "Tipo", "Bonos", "Horas", "Total (€)"]


def table_style(total_row: bool = False) -> list[tuple]:
    """Table commands; the last row is bolded only when it holds a total."""
    style = [
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#F9FAFB")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.HexColor("#666666")),
        ("ALIGN", (0, 0), (-1, -1), "LEFT"),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#EEEEEE")),
        ("ROWBACKGROUNDS", (0, 1), (-1, -2 if total_row else -1), [colors.white, colors.whitesmoke]),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]
    if total_row:
        # fila de total
        style += [
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ("BACKGROUND", (0, -1), (-1, -1), colors.HexColor("#F3F4F6")),
        ]
    return style


def dataframe_to_pdf(
    df: pd.DataFrame, title: str, summary_lines: Iterable[str] = (), total_row: bool = False
) -> bytes:
    """Landscape A4 table with a bordered page and an optional summary box."""
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=landscape(A4), topMargin=24, bottomMargin=24, leftMargin=24, rightMargin=24)
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(name="TitleCentered", parent=styles["Title"], alignment=TA_CENTER)
    summary_style = ParagraphStyle(
        name="Summary", parent=styles["Normal"], alignment=TA_CENTER,
        textColor=colors.black, fontSize=11, leading=13, spaceBefore=4, spaceAfter=2
    )
    story = [Paragraph(title, title_style), Spacer(1, 8)]
    if df.empty:
        story.append(Paragraph("Sin datos para mostrar.", styles["Normal"]))
    else:
        data = [list(df.columns)] + df.values.tolist()
        table = Table(data, repeatRows=1, hAlign="CENTER")
        table.setStyle(TableStyle(table_style(total_row)))
        story.append(table)

    lines = [line for line in summary_lines if line]
    if lines:
        story += [Spacer(1, 12)]
        cells = [[Paragraph(line, summary_style)] for line in lines]
        summary_width = min(520, 0.65 * doc.width)
        box = Table(cells, colWidths=[summary_width], hAlign="CENTER")
        box.setStyle(TableStyle([
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("BOX", (0, 0), (-1, -1), 0.6, colors.HexColor("#C7CCD6")),
            ("TOPPADDING", (0, 0), (-1, -1), 8),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
        ]))
        story.append(box)

    def draw_page_border(canvas, doc_obj):
        canvas.saveState()
        w, h = doc_obj.pagesize
        canvas.setStrokeColor(colors.HexColor("#C7CCD6"))
        canvas.setLineWidth(0.8)
        margin = 12
        canvas.rect(margin, margin, w - 2*margin, h - 2*margin)
        canvas.restoreState()

    doc.build(story, onFirstPage=draw_page_border, onLaterPages=draw_page_border)
    return buf.getvalue()


def month_print_table(
    shifts: Iterable[Shift],
    shift_types: Iterable[ShiftType],
    variables: Iterable[ShiftVariable],
) -> pd.DataFrame:
    """Rows of the printable month report, closed by the accumulated total."""
    df = shifts_to_dataframe(shifts, shift_types, variables)
    if df.empty:
        return pd.DataFrame(columns=PRINT_COLUMNS)

    def horario(row) -> str:
        text = f"T: {row['Teórico']}"
        if row["Real"]:
            text += f" / R: {row['Real']}"
            if row["Excesos (min)"] > 0:
                text += f" (+{row['Excesos (min)']:.2f} EXC)"
        return text

    out = pd.DataFrame({
        "Fecha": df["Fecha"],
        "Horario (Teórico / Real)": df.apply(horario, axis=1),
        "Tipo": df["Tipo"],
        "Bonos": df["Bonos"],
        "Horas": df["Horas"].map(lambda h: f"{h:g}h"),
        "Total (€)": df["Total (€)"].map(format_currency),
    })
    total = ["", "", "", "", "TOTAL ACUMULADO:", format_currency(float(df["Total (€)"].sum()))]
    out.loc[len(out)] = total
    return out


def build_month_pdf(
    shifts: Iterable[Shift],
    shift_types: Iterable[ShiftType],
    variables: Iterable[ShiftVariable],
    year: int,
    month: int,
) -> bytes:
    shift_types = list(shift_types)
    variables = list(variables)
    selected = period_shifts(shifts, year, month)
    summary = summarize_period(selected, shift_types, variables, year, month)
    table = month_print_table(selected, shift_types, variables)
    lines = [
        f"{summary.shift_count} turnos · Total del mes: {format_currency(summary.total_earnings)}",
        f"Excesos compensados: {summary.total_excess:.2f} min" if summary.total_excess > 0 else "",
    ]
    return dataframe_to_pdf(table, title=f"Informe de Turnos: {month_label(year, month)}", summary_lines=lines, total_row=True)


def archive_month_pdf(
    reports_dir: Path,
    shifts: Iterable[Shift],
    shift_types: Iterable[ShiftType],
    variables: Iterable[ShiftVariable],
    year: int,
    month: int,
) -> Path:
    """Writes informe_YYYY-MM.pdf into reports_dir and returns its path."""
    destino = Path(reports_dir) / f"informe_{year:04d}-{month:02d}.pdf"
    destino.write_bytes(build_month_pdf(shifts, shift_types, variables, year, month))
    logger.info(f"Informe guardado en {destino}")
    return destino
