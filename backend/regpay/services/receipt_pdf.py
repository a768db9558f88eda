from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from ..core.config import settings
from ..models.types import ServiceType
from ..utils.errors import GenerationFailure
from ..utils.verification import scan_url

CONTENT_TYPE = "application/pdf"


@dataclass
class ReceiptRequest:
    recipient_name: str
    recipient_phone: str
    service_type: ServiceType
    amount: Decimal
    reference: str
    description: str
    verification_code: str
    recipient_email: Optional[str] = None
    additional_info: str = ""
    item_count: int = 1


def _qr(data: str, size: float) -> Drawing:
    widget = QrCodeWidget(data)
    x1, y1, x2, y2 = widget.getBounds()
    width, height = x2 - x1, y2 - y1
    drawing = Drawing(size, size, transform=[size / width, 0, 0, size / height, 0, 0])
    drawing.add(widget)
    return drawing


def generate_receipt(req: ReceiptRequest) -> Tuple[bytes, str]:
    """Render a one-page confirmation receipt with a scannable check-in QR.

    Returns ``(pdf_bytes, content_type)``. Raises GenerationFailure when
    ReportLab cannot build the document.
    """
    if not req.verification_code:
        raise GenerationFailure("A verification code is required to render a receipt")

    def _money(v):
        return f"{settings.CURRENCY_SYMBOL} {float(v or 0):,.2f}"

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
        title=f"Receipt {req.reference}",
        author=settings.EVENT_NAME,
    )
    brand = colors.HexColor("#14532d")
    success = colors.HexColor("#16a34a")
    muted = colors.HexColor("#6b7280")
    border = colors.HexColor("#e5e7eb")

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name="TitleBrand", parent=styles["Heading1"], fontName="Helvetica-Bold", fontSize=18, textColor=brand, spaceAfter=4))
    styles.add(ParagraphStyle(name="Muted", parent=styles["Normal"], fontName="Helvetica", fontSize=9, textColor=muted))
    styles.add(ParagraphStyle(name="Strong", parent=styles["Normal"], fontName="Helvetica-Bold", fontSize=10))
    styles.add(ParagraphStyle(name="NormalSmall", parent=styles["Normal"], fontName="Helvetica", fontSize=10))
    badge = ParagraphStyle(name="StatusBadge", parent=styles["Normal"], textColor=success, backColor=colors.whitesmoke, leading=12, fontName="Helvetica-Bold", alignment=1)

    story = []

    header_tbl = Table(
        [[Paragraph(escape(settings.EVENT_NAME), styles["TitleBrand"]), Paragraph("CONFIRMED", badge)]],
        colWidths=[doc.width * 0.75, doc.width * 0.25],
        hAlign="LEFT",
    )
    header_tbl.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "MIDDLE"), ("ALIGN", (1, 0), (1, 0), "RIGHT")]))
    story.append(header_tbl)
    story.append(Paragraph(f'"{escape(settings.EVENT_MOTTO)}"', styles["Muted"]))
    story.append(Spacer(1, 8))
    story.append(Paragraph(escape(req.description), styles["Strong"]))
    story.append(Spacer(1, 6))

    def _label(text):
        return Paragraph(f"<font color='#6b7280'>{text}</font>", styles["NormalSmall"])

    summary_data = [
        [_label("Name"), Paragraph(escape(req.recipient_name or "—"), styles["Strong"])],
        [_label("Phone"), Paragraph(escape(req.recipient_phone or "—"), styles["NormalSmall"])],
        [_label("Email"), Paragraph(escape(req.recipient_email or "—"), styles["NormalSmall"])],
        [_label("Reference"), Paragraph(escape(req.reference), styles["NormalSmall"])],
        [_label("Amount Paid"), Paragraph(_money(req.amount), styles["Strong"])],
        [_label("Quantity"), Paragraph(str(req.item_count), styles["NormalSmall"])],
        [_label("Issued"), Paragraph(f"{datetime.utcnow():%Y-%m-%d %H:%M} UTC", styles["NormalSmall"])],
    ]
    summary_tbl = Table(summary_data, colWidths=[doc.width * 0.25, doc.width * 0.75])
    summary_tbl.setStyle(TableStyle([
        ("INNERGRID", (0, 0), (-1, -1), 0.25, border),
        ("BOX", (0, 0), (-1, -1), 0.25, border),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("BACKGROUND", (0, 0), (-1, -1), colors.whitesmoke),
        ("LEFTPADDING", (0, 0), (-1, -1), 6), ("RIGHTPADDING", (0, 0), (-1, -1), 6), ("TOPPADDING", (0, 0), (-1, -1), 4), ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]))
    story.append(summary_tbl)
    story.append(Spacer(1, 8))

    if req.additional_info:
        story.append(Paragraph("Details", styles["Muted"]))
        for line in req.additional_info.split(" | "):
            story.append(Paragraph(escape(line), styles["NormalSmall"]))
        story.append(Spacer(1, 8))

    qr_tbl = Table(
        [[
            _qr(scan_url(req.verification_code, settings.RECEIPT_SCAN_BASE_URL), 42 * mm),
            [
                Paragraph("Verification Code", styles["Muted"]),
                Paragraph(req.verification_code, styles["TitleBrand"]),
                Paragraph("Present this code at check-in. It is valid once per ticket.", styles["Muted"]),
            ],
        ]],
        colWidths=[48 * mm, doc.width - 48 * mm],
    )
    qr_tbl.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "MIDDLE"), ("BOX", (0, 0), (-1, -1), 0.25, border)]))
    story.append(qr_tbl)

    story.append(Spacer(1, 12))
    story.append(Paragraph("Thank you for your participation.", styles["Muted"]))

    try:
        doc.build(story)
    except Exception as exc:
        raise GenerationFailure(f"Receipt rendering failed: {exc}") from exc
    buffer.seek(0)
    return buffer.read(), CONTENT_TYPE


def receipt_filename(service_type: ServiceType, verification_code: str) -> str:
    # Published under a public URL, so it must not carry the purchaser phone
    return f"{ServiceType(service_type).value}-receipt-{verification_code}.pdf"
