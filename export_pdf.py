import json
import sys
from datetime import datetime

import pytz
from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.units import mm
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from reportlab.graphics.shapes import Rect, String, Line, Drawing

COLOR_MAP = {
    "SHIFT_START": colors.HexColor("#95a5a6"),       # Grey: working
    "MEAL_START": colors.HexColor("#f59e0b"),        # Amber
    "REST_START": colors.HexColor("#4f46e5"),        # Indigo
    "DISPOSAL_START": colors.HexColor("#3498db"),    # Blue
    "INSPECTION_START": colors.HexColor("#ef4444"),  # Red
}

LEGEND = [
    ("Trabalho", "SHIFT_START"),
    ("Refeição", "MEAL_START"),
    ("Descanso", "REST_START"),
    ("À Disposição", "DISPOSAL_START"),
    ("Fiscalização", "INSPECTION_START"),
]


def day_intervals(events, day_iso, tz):
    """
    Start events of the given local day as (type, start_min, end_min) blocks.
    Open events run to midnight. The shift comes first so sub-activities are drawn on top.
    """
    blocks = []
    for ev in events:
        if not ev.get("type", "").endswith("_START"):
            continue
        start = datetime.fromisoformat(ev["started_at"]).astimezone(tz)
        if start.date().isoformat() != day_iso:
            continue
        start_min = start.hour * 60 + start.minute
        end_min = 24 * 60
        if ev.get("ended_at"):
            end = datetime.fromisoformat(ev["ended_at"]).astimezone(tz)
            if end.date() == start.date():
                end_min = end.hour * 60 + end.minute
        blocks.append((ev["type"], start_min, max(end_min, start_min)))
    blocks.sort(key=lambda b: (b[0] != "SHIFT_START", b[1]))
    return blocks


def draw_timeline(drawing, blocks):
    """Draws a 24h timeline with colored blocks."""
    width = 160 * mm
    height = 10 * mm

    drawing.add(Rect(0, 0, width, height, fillColor=colors.whitesmoke, strokeColor=colors.black))

    # Time markers (every 3 hours)
    for i in range(0, 25, 3):
        x = (i / 24.0) * width
        drawing.add(Line(x, 0, x, -2, strokeColor=colors.grey))
        drawing.add(String(x - 2, -8, f"{i:02d}", fontSize=6, fontName="Helvetica"))

    for ev_type, start_min, end_min in blocks:
        block_width = (end_min - start_min) / (24 * 60) * width
        if block_width <= 0:
            continue
        drawing.add(Rect((start_min / (24 * 60)) * width, 0, block_width, height,
                         fillColor=COLOR_MAP.get(ev_type, colors.white), strokeWidth=0))


def _legend_table():
    cells = []
    for label, key in LEGEND:
        cells.append(Paragraph(f"<font color='{COLOR_MAP[key].hexval().replace('0x', '#')}'>■</font> {label}",
                               ParagraphStyle('legend', fontSize=7)))
    t = Table([cells])
    t.setStyle(TableStyle([('ALIGN', (0, 0), (-1, -1), 'LEFT')]))
    return t


def generate_pdf_report(json_data, output_path):
    doc = SimpleDocTemplate(output_path, pagesize=A4, rightMargin=20, leftMargin=20, topMargin=20, bottomMargin=20)
    styles = getSampleStyleSheet()
    elements = []

    meta = json_data.get("metadata", {})
    driver = json_data.get("driver", {})
    summaries = json_data.get("daily_summaries", [])
    events = json_data.get("events", [])
    tz = pytz.timezone(meta.get("timezone") or "UTC")

    elements.append(Paragraph("Relatório de Jornada do Motorista", styles['Title']))
    elements.append(Spacer(1, 12))

    # Overview
    days_with_anomalies = sum(1 for s in summaries if s.get("anomalies"))
    overview = [
        [Paragraph("<b>Dias analisados</b>", styles['Normal']), Paragraph(f"<b>{len(summaries)}</b>", styles['Normal'])],
        [Paragraph("<b>Dias com anomalias</b>", styles['Normal']), Paragraph(f"<b>{days_with_anomalies}</b>", styles['Normal'])],
    ]
    st = Table(overview, colWidths=[350, 100])
    st.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, -1), colors.lavender),
        ('GRID', (0, 0), (-1, -1), 1, colors.white),
        ('PADDING', (0, 0), (-1, -1), 8)
    ]))
    elements.append(st)
    elements.append(Spacer(1, 18))

    info_data = [
        ["Arquivo:", meta.get('filename', 'N/A'), "Motorista:", driver.get('name', 'N/A')],
        ["Gerado em:", meta.get('generated_at', 'N/A'), "CPF:", driver.get('cpf', 'N/A')],
        ["Fuso horário:", meta.get('timezone', 'UTC'), "Estado atual:", json_data.get('current_state', 'N/A')],
    ]
    it = Table(info_data, colWidths=[80, 150, 80, 150])
    it.setStyle(TableStyle([
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.darkslategrey),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
    ]))
    elements.append(it)
    elements.append(Spacer(1, 18))

    # Timeline per day
    elements.append(Paragraph("Linha do Tempo (últimos 7 dias)", styles['Heading2']))
    elements.append(_legend_table())
    for summary in summaries[-7:]:
        day_iso = summary.get("date")
        elements.append(Paragraph(
            f"Data: {day_iso} - Trabalhado: {summary.get('total_worked')} - "
            f"Jornada: {summary.get('total_shift')}", styles['Heading3']))

        d = Drawing(160 * mm, 15 * mm)
        draw_timeline(d, day_intervals(events, day_iso, tz))
        elements.append(d)
        elements.append(Spacer(1, 10))

        if summary.get("anomalies"):
            elements.append(Paragraph("<font color='red'>• Anomalias detectadas neste dia</font>", styles['Italic']))
        elements.append(Spacer(1, 10))

    # Totals table
    elements.append(Paragraph("Totais Diários", styles['Heading2']))
    if not summaries:
        elements.append(Paragraph("Nenhum evento registrado.", styles['Normal']))
    else:
        data = [["Data", "Trabalhado", "Refeição", "Descanso", "Disposição", "Contínuo"]]
        for s in summaries:
            data.append([s.get("date"), s.get("total_worked"), s.get("total_meal"),
                         s.get("total_rest"), s.get("total_disposal"), s.get("longest_continuous_work")])
        elements.append(_styled_table(data, [70, 70, 70, 70, 70, 70]))
    elements.append(Spacer(1, 18))

    # Anomalies detail
    elements.append(Paragraph("Anomalias para Revisão", styles['Heading2']))
    anomaly_rows = [[s.get("date"), Paragraph(a, ParagraphStyle('desc', fontSize=7))]
                    for s in summaries for a in s.get("anomalies", [])]
    if not anomaly_rows:
        elements.append(Paragraph("Nenhuma anomalia detectada.", styles['Normal']))
    else:
        elements.append(_styled_table([["Data", "Descrição"]] + anomaly_rows, [70, 390]))

    elements.append(Spacer(1, 18))
    elements.append(Paragraph("<i>Nota: anomalias são sinalizações para revisão humana, não penalidades.</i>", styles['Italic']))

    doc.build(elements)


def _styled_table(data, col_widths):
    t = Table(data, colWidths=col_widths)
    t.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor("#2c3e50")),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey)
    ]))
    return t


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Uso: python3 export_pdf.py report.json output.pdf")
    else:
        with open(sys.argv[1], 'r', encoding='utf-8') as f:
            data = json.load(f)
        generate_pdf_report(data, sys.argv[2])
        print(f"PDF gerado: {sys.argv[2]}")
