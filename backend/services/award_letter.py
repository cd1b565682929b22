"""
Award letter PDF for approved proposals.

Rendered on demand with a reportlab canvas. Header, body and signature
blocks sit at fixed positions on US Letter pages; the body wraps onto further
pages when it does not fit.
"""
import io
from datetime import datetime, timezone
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.units import inch
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from backend.core.config import settings
from backend.models import Proposal
from backend.services.proposal_service import format_money

PAGE_WIDTH, PAGE_HEIGHT = letter
LEFT_MARGIN = 1 * inch
RIGHT_MARGIN = 1 * inch
TOP_MARGIN = 1 * inch
BOTTOM_MARGIN = 1.2 * inch
TEXT_WIDTH = PAGE_WIDTH - LEFT_MARGIN - RIGHT_MARGIN

BODY_FONT = "Helvetica"
BODY_SIZE = 11
LINE_HEIGHT = 15
PRIMARY = colors.HexColor("#1E3A8A")


def _draw_header(pdf: canvas.Canvas, issued: datetime) -> float:
    """Letterhead band; returns the y coordinate where the body may start."""
    pdf.setFillColor(PRIMARY)
    pdf.rect(0, PAGE_HEIGHT - 1.1 * inch, PAGE_WIDTH, 1.1 * inch, fill=True, stroke=False)

    pdf.setFillColor(colors.white)
    pdf.setFont("Helvetica-Bold", 20)
    pdf.drawString(LEFT_MARGIN, PAGE_HEIGHT - 0.6 * inch, settings.app_name)
    pdf.setFont("Helvetica", 10)
    pdf.drawString(LEFT_MARGIN, PAGE_HEIGHT - 0.85 * inch, "Office of Research Funding")

    pdf.setFillColor(colors.black)
    pdf.setFont(BODY_FONT, 10)
    date_text = issued.strftime("%B %d, %Y")
    pdf.drawRightString(PAGE_WIDTH - RIGHT_MARGIN, PAGE_HEIGHT - 1.45 * inch, date_text)

    return PAGE_HEIGHT - 1.9 * inch


def _draw_footer(pdf: canvas.Canvas, page_number: int) -> None:
    pdf.setStrokeColor(PRIMARY)
    pdf.setLineWidth(0.5)
    pdf.line(LEFT_MARGIN, 0.8 * inch, PAGE_WIDTH - RIGHT_MARGIN, 0.8 * inch)
    pdf.setFont(BODY_FONT, 8)
    pdf.setFillColor(colors.grey)
    pdf.drawString(LEFT_MARGIN, 0.6 * inch, f"{settings.app_name} - Award Letter")
    pdf.drawRightString(PAGE_WIDTH - RIGHT_MARGIN, 0.6 * inch, f"Page {page_number}")
    pdf.setFillColor(colors.black)


def build_letter_paragraphs(proposal: Proposal) -> list[str]:
    researcher = proposal.researcher
    grant = proposal.grant
    grant_title = grant.title if grant else "the selected grant"
    return [
        f"Dear {researcher.full_name},",
        (
            f'We are pleased to inform you that your proposal "{proposal.title}" submitted under '
            f'"{grant_title}" has been approved for funding.'
        ),
        (
            f"The total award is {format_money(proposal.funding)} in the {proposal.category.value} "
            f"category. Funds are allocated as follows: personnel {format_money(proposal.personnel_costs)}, "
            f"equipment {format_money(proposal.equipment_costs)}, materials {format_money(proposal.materials_costs)}, "
            f"travel {format_money(proposal.travel_costs)} and other costs {format_money(proposal.other_costs)}."
        ),
        (
            f"The award is made to {researcher.full_name} at {researcher.institution}. "
            "Please retain this letter for your records and acknowledge acceptance through the portal."
        ),
        "Congratulations on your successful application. We look forward to the outcomes of your research.",
    ]


def render_award_letter(proposal: Proposal, issued: Optional[datetime] = None) -> bytes:
    """Render the award letter and return the PDF bytes."""
    issued = issued or datetime.now(timezone.utc)
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=letter)
    pdf.setTitle(f"Award Letter - {proposal.title}")
    pdf.setAuthor(settings.app_name)

    page = 1
    y = _draw_header(pdf, issued)

    pdf.setFont("Helvetica-Bold", 14)
    pdf.drawString(LEFT_MARGIN, y, "Notice of Grant Award")
    y -= 0.2 * inch
    pdf.setFont(BODY_FONT, 9)
    pdf.setFillColor(colors.grey)
    pdf.drawString(LEFT_MARGIN, y, f"Reference: {proposal.id}")
    pdf.setFillColor(colors.black)
    y -= 0.45 * inch

    pdf.setFont(BODY_FONT, BODY_SIZE)
    for paragraph in build_letter_paragraphs(proposal):
        for line in simpleSplit(paragraph, BODY_FONT, BODY_SIZE, TEXT_WIDTH):
            if y < BOTTOM_MARGIN:
                _draw_footer(pdf, page)
                pdf.showPage()
                page += 1
                y = PAGE_HEIGHT - TOP_MARGIN
                pdf.setFont(BODY_FONT, BODY_SIZE)
            pdf.drawString(LEFT_MARGIN, y, line)
            y -= LINE_HEIGHT
        y -= LINE_HEIGHT / 2

    # Signature block needs about 1.3 inches
    if y - 1.3 * inch < BOTTOM_MARGIN:
        _draw_footer(pdf, page)
        pdf.showPage()
        page += 1
        y = PAGE_HEIGHT - TOP_MARGIN

    y -= 0.3 * inch
    pdf.setFont(BODY_FONT, BODY_SIZE)
    pdf.drawString(LEFT_MARGIN, y, "Sincerely,")
    y -= 0.55 * inch
    pdf.line(LEFT_MARGIN, y, LEFT_MARGIN + 2.5 * inch, y)
    y -= 0.2 * inch
    pdf.setFont("Helvetica-Bold", BODY_SIZE)
    pdf.drawString(LEFT_MARGIN, y, "Grants Administration")
    y -= 0.18 * inch
    pdf.setFont(BODY_FONT, 10)
    pdf.drawString(LEFT_MARGIN, y, settings.app_name)

    _draw_footer(pdf, page)
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()
