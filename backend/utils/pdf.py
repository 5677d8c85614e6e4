# backend/utils/pdf.py

from pathlib import Path

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from config import settings
from models.invoice import Invoice
from models.course import CourseRequest

STORAGE_DIR = Path(settings.INVOICE_STORAGE_DIR)

FONT_REGULAR_NAME = "Helvetica"
FONT_BOLD_NAME = "Helvetica-Bold"


def ensure_storage_dir() -> None:
    STORAGE_DIR.mkdir(parents=True, exist_ok=True)


def get_pdf_path(invoice_number: str) -> Path:
    """Path of the generated PDF for an invoice number."""
    ensure_storage_dir()
    return STORAGE_DIR / f"{invoice_number.replace('/', '_')}.pdf"


def _money(value) -> str:
    return f"${float(value or 0):,.2f}"


def generate_invoice_pdf(invoice: Invoice, course: CourseRequest, out_path: Path, company: dict | None = None) -> None:
    """
    Render an organization invoice:
    - header with number and dates
    - issuer (left) and bill-to organization (right)
    - course line with attendee count, rate, tax and total
    - attendance roster of billed students
    """
    ensure_storage_dir()
    company = company or {}

    c = canvas.Canvas(str(out_path), pagesize=A4)
    width, height = A4

    def draw_text(x, y, text, font=FONT_REGULAR_NAME, size=10, align="left"):
        c.setFont(font, size)
        text_str = str(text) if text is not None else ""
        if align == "right":
            c.drawRightString(x, y, text_str)
        elif align == "center":
            c.drawCentredString(x, y, text_str)
        else:
            c.drawString(x, y, text_str)

    # --- 1. Header ---
    y = height - 20 * mm
    draw_text(190 * mm, y, f"Invoice {invoice.invoice_number}", font=FONT_BOLD_NAME, size=16, align="right")
    y -= 7 * mm
    draw_text(190 * mm, y, f"Invoice date: {invoice.invoice_date}", align="right")
    y -= 5 * mm
    draw_text(190 * mm, y, f"Due date: {invoice.due_date}", align="right")
    y -= 5 * mm
    draw_text(190 * mm, y, f"Status: {invoice.status.value.replace('_', ' ')}", align="right")

    # --- 2. Parties ---
    y -= 15 * mm
    draw_text(20 * mm, y, "From", font=FONT_BOLD_NAME, size=11)
    draw_text(110 * mm, y, "Bill to", font=FONT_BOLD_NAME, size=11)
    y -= 6 * mm
    draw_text(20 * mm, y, company.get("name") or "")
    org = invoice.organization
    draw_text(110 * mm, y, org.name if org else "")
    y -= 5 * mm
    draw_text(20 * mm, y, company.get("address") or "")
    if org is not None:
        draw_text(110 * mm, y, org.address or "")
        y -= 5 * mm
        draw_text(110 * mm, y, org.contact_email or "")

    # --- 3. Course line ---
    y -= 15 * mm
    c.line(20 * mm, y + 4 * mm, 190 * mm, y + 4 * mm)
    draw_text(20 * mm, y, "Course", font=FONT_BOLD_NAME)
    draw_text(100 * mm, y, "Date", font=FONT_BOLD_NAME)
    draw_text(130 * mm, y, "Students", font=FONT_BOLD_NAME, align="right")
    draw_text(160 * mm, y, "Rate", font=FONT_BOLD_NAME, align="right")
    draw_text(190 * mm, y, "Amount", font=FONT_BOLD_NAME, align="right")
    y -= 6 * mm
    course_name = course.course_type_name if course else ""
    draw_text(20 * mm, y, course_name)
    draw_text(100 * mm, y, course.scheduled_date if course else "")
    draw_text(130 * mm, y, invoice.students_billed, align="right")
    draw_text(160 * mm, y, _money(invoice.rate_per_student), align="right")
    draw_text(190 * mm, y, _money(invoice.base_amount), align="right")
    if course is not None:
        y -= 5 * mm
        draw_text(20 * mm, y, f"Location: {course.location}", size=9)

    # --- 4. Totals ---
    y -= 12 * mm
    c.line(120 * mm, y + 4 * mm, 190 * mm, y + 4 * mm)
    draw_text(160 * mm, y, "Subtotal:", align="right")
    draw_text(190 * mm, y, _money(invoice.base_amount), align="right")
    y -= 5 * mm
    draw_text(160 * mm, y, "Tax:", align="right")
    draw_text(190 * mm, y, _money(invoice.tax_amount), align="right")
    y -= 6 * mm
    draw_text(160 * mm, y, "Total:", font=FONT_BOLD_NAME, size=12, align="right")
    draw_text(190 * mm, y, _money(invoice.amount), font=FONT_BOLD_NAME, size=12, align="right")
    y -= 5 * mm
    draw_text(160 * mm, y, "Balance due:", align="right")
    draw_text(190 * mm, y, _money(invoice.balance_due), align="right")

    # --- 5. Attendance roster ---
    attendees = [s for s in course.students if s.attended] if course is not None else []
    if attendees:
        y -= 15 * mm
        draw_text(20 * mm, y, "Attendance", font=FONT_BOLD_NAME, size=11)
        y -= 6 * mm
        for idx, student in enumerate(attendees, start=1):
            if y < 25 * mm:
                c.showPage()
                y = height - 20 * mm
            draw_text(20 * mm, y, f"{idx}. {student.first_name} {student.last_name}", size=9)
            draw_text(110 * mm, y, student.email, size=9)
            y -= 5 * mm

    # --- 6. Footer ---
    draw_text(width / 2, 12 * mm, f"Please reference {invoice.invoice_number} with your payment.",
              size=8, align="center")

    c.save()
