"""
VAT return PDF rendered with reportlab.
"""
import io
from decimal import Decimal

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle


def _money(value) -> str:
    return f"{Decimal(value or 0):,.2f} TRY"


def render_vat_return_pdf(declaration: dict) -> bytes:
    """Render the output of ``get_vat_declaration`` as a one-page PDF."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, topMargin=0.5 * inch, bottomMargin=0.5 * inch)
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle("Title", parent=styles["Heading1"], fontSize=20, textColor=colors.HexColor("#0f172a"))
    header_style = ParagraphStyle("Header", parent=styles["Normal"], fontSize=10, textColor=colors.HexColor("#64748b"))
    value_style = ParagraphStyle("Value", parent=styles["Normal"], fontSize=12, textColor=colors.HexColor("#0f172a"))

    vat_return = declaration["vat_return"]
    company = declaration.get("client_company") or {}

    elements = [
        Paragraph("VAT RETURN (KDV BEYANNAMESI)", title_style),
        Spacer(1, 6),
        Paragraph(f"Period {declaration['period']}", header_style),
        Spacer(1, 16),
        Paragraph(f"<b>Taxpayer:</b> {company.get('name', '-')}", value_style),
        Paragraph(f"Tax number {company.get('tax_number', '-')}", header_style),
        Spacer(1, 20),
    ]

    rows = [["Rate", "Taxable base", "Output VAT", "Input VAT"]]
    for item in vat_return["breakdown"]:
        rows.append(
            [item["rate"], _money(item["taxable_base"]), _money(item["output_vat"]), _money(item["input_vat"])]
        )
    if len(rows) == 1:
        rows.append(["-", _money(0), _money(0), _money(0)])

    breakdown_table = Table(rows, colWidths=[1.2 * inch, 1.9 * inch, 1.9 * inch, 1.9 * inch])
    breakdown_table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.HexColor("#64748b")),
                ("BOTTOMPADDING", (0, 0), (-1, 0), 10),
                ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
                ("LINEBELOW", (0, 0), (-1, 0), 1, colors.HexColor("#e2e8f0")),
            ]
        )
    )
    elements.append(breakdown_table)
    elements.append(Spacer(1, 20))

    totals = [
        ["Sales invoices", str(vat_return["sales_invoice_count"])],
        ["Purchase invoices", str(vat_return["purchase_invoice_count"])],
        ["Output VAT", _money(vat_return["output_vat"])],
        ["Input VAT", _money(vat_return["input_vat"])],
        ["Deductible VAT carried forward", _money(vat_return["deductible_vat_carried_forward"])],
        ["VAT payable", _money(vat_return["payable_vat"])],
    ]
    totals_table = Table(totals, colWidths=[4.5 * inch, 2.4 * inch])
    totals_table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 11),
                ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ("LINEABOVE", (0, -1), (-1, -1), 1, colors.HexColor("#e2e8f0")),
                ("TOPPADDING", (0, -1), (-1, -1), 8),
            ]
        )
    )
    elements.append(totals_table)

    doc.build(elements)
    return buffer.getvalue()
