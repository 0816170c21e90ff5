import logging
import os

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from xml.sax.saxutils import escape

from document import COLUMN_ALIGNMENT

logger = logging.getLogger(__name__)

BRAND_BLUE = colors.Color(30 / 255, 58 / 255, 138 / 255)
STRIPE = colors.Color(0.96, 0.96, 0.97)


class InvoicePDF:
    def __init__(self, document, settings=None):
        self.document = document
        self.font_name = 'Helvetica'
        self.bold_font_name = 'Helvetica-Bold'

        font_path = getattr(settings, 'pdf_font_path', None)
        bold_font_path = getattr(settings, 'pdf_bold_font_path', None)
        if font_path:
            self.font_name = self._register('Invoice-Regular', font_path) or self.font_name
            # Regular face doubles as bold when no bold file is configured
            self.bold_font_name = self.font_name if self.font_name != 'Helvetica' else self.bold_font_name
        if bold_font_path:
            self.bold_font_name = self._register('Invoice-Bold', bold_font_path) or self.bold_font_name

    @staticmethod
    def _register(name, path):
        if not os.path.exists(path):
            logger.warning("Font file not found: %s", path)
            return None
        try:
            pdfmetrics.registerFont(TTFont(name, path))
            return name
        except Exception as e:
            logger.warning("Could not load font %s: %s", path, e)
            return None

    def _styles(self):
        styles = getSampleStyleSheet()
        normal = ParagraphStyle('Normal_Custom', parent=styles['Normal'], fontName=self.font_name, fontSize=9, leading=12)
        return {
            'normal': normal,
            'muted': ParagraphStyle('Muted', parent=normal, textColor=colors.gray),
            'bold': ParagraphStyle('Bold_Custom', parent=normal, fontName=self.bold_font_name, fontSize=10),
            'right': ParagraphStyle('Right', parent=normal, alignment=2),
            'center': ParagraphStyle('Center', parent=normal, alignment=1),
            'header': ParagraphStyle('Header', parent=normal, fontName=self.bold_font_name, textColor=colors.white),
            'title': ParagraphStyle('Title_Custom', parent=styles['Heading1'], fontName=self.bold_font_name,
                                    fontSize=20, leading=24, textColor=BRAND_BLUE, spaceAfter=6),
            'total': ParagraphStyle('Total', parent=normal, fontName=self.bold_font_name, fontSize=12,
                                    leading=16, textColor=BRAND_BLUE),
            'small': ParagraphStyle('Small', parent=normal, fontSize=8, textColor=colors.gray),
        }

    @staticmethod
    def _p(text, style):
        return Paragraph(escape(text or "").replace("\n", "<br/>"), style)

    def build_story(self):
        doc = self.document
        s = self._styles()
        story = []

        # ------------------------------------------------------------------
        # Header: title, number and dates (left) | issuer block (right)
        # ------------------------------------------------------------------
        title_block = [
            self._p(doc.title.upper(), s['title']),
            self._p(f"N° {doc.document_number}", s['muted']),
            self._p(f"Date: {doc.created_date}", s['muted']),
            self._p(f"Échéance: {doc.due_date}", s['muted']),
        ]

        issuer_lines = doc.issuer.lines + doc.issuer.field_lines()
        issuer = [self._p(line, s['bold'] if i == 0 else s['muted']) for i, line in enumerate(issuer_lines)]

        header_table = Table([[title_block, issuer]], colWidths=[95 * mm, 85 * mm])
        header_table.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('LEFTPADDING', (0, 0), (-1, -1), 0),
            ('RIGHTPADDING', (0, 0), (-1, -1), 0),
        ]))
        story.append(header_table)
        story.append(Spacer(1, 10 * mm))

        # ------------------------------------------------------------------
        # Recipient
        # ------------------------------------------------------------------
        recipient = doc.recipient
        story.append(self._p(recipient.heading, s['bold']))
        for i, line in enumerate(recipient.lines):
            story.append(self._p(line, s['normal'] if i == 0 and recipient.known else s['muted']))
        for line in recipient.field_lines():
            story.append(self._p(line, s['muted']))
        story.append(Spacer(1, 8 * mm))

        # ------------------------------------------------------------------
        # Line items
        # ------------------------------------------------------------------
        aligned = {'LEFT': s['normal'], 'CENTER': s['center'], 'RIGHT': s['right']}
        items_data = [[self._p(col, s['header']) for col in doc.columns]]
        for row in doc.rows:
            items_data.append([self._p(cell, aligned[COLUMN_ALIGNMENT[i]]) for i, cell in enumerate(row)])

        items_table = Table(items_data, colWidths=[70 * mm, 20 * mm, 35 * mm, 20 * mm, 35 * mm], repeatRows=1)
        table_style = [
            ('BACKGROUND', (0, 0), (-1, 0), BRAND_BLUE),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('TOPPADDING', (0, 0), (-1, -1), 4),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
        ]
        for i, align in enumerate(COLUMN_ALIGNMENT):
            table_style.append(('ALIGN', (i, 0), (i, -1), align))
        for row in range(2, len(items_data), 2):
            table_style.append(('BACKGROUND', (0, row), (-1, row), STRIPE))
        items_table.setStyle(TableStyle(table_style))
        story.append(items_table)
        story.append(Spacer(1, 6 * mm))

        # ------------------------------------------------------------------
        # Totals, pushed to the right
        # ------------------------------------------------------------------
        totals_data = []
        for i, (label, value) in enumerate(doc.totals):
            last = i == len(doc.totals) - 1
            style = s['total'] if last else s['muted']
            value_style = ParagraphStyle(f'TotalValue{i}', parent=style, alignment=2)
            totals_data.append([self._p(f"{label}:", style), self._p(value, value_style)])

        totals_table = Table(totals_data, colWidths=[25 * mm, 40 * mm])
        totals_table.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('LINEABOVE', (0, -1), (-1, -1), 0.5, colors.lightgrey),
        ]))
        container_table = Table([[None, totals_table]], colWidths=[115 * mm, 65 * mm])
        story.append(container_table)

        # ------------------------------------------------------------------
        # Conditions / notes, then bank details
        # ------------------------------------------------------------------
        if doc.terms or doc.notes:
            story.append(Spacer(1, 8 * mm))
            if doc.terms:
                story.append(self._p(f"Conditions: {doc.terms}", s['small']))
            if doc.notes:
                story.append(self._p(f"Notes: {doc.notes}", s['small']))

        if doc.bank_lines:
            story.append(Spacer(1, 6 * mm))
            for line in doc.bank_lines:
                story.append(self._p(line, s['small']))

        return story

    def generate(self, target):
        """Write the PDF to a filename or a binary file object; returns the page count."""
        pdf = SimpleDocTemplate(
            target, pagesize=A4, rightMargin=15 * mm, leftMargin=15 * mm,
            topMargin=15 * mm, bottomMargin=15 * mm,
            title=f"{self.document.title} {self.document.document_number}",
        )
        pdf.build(self.build_story())
        logger.info("PDF generated for %s (%d pages)", self.document.document_number, pdf.page)
        return pdf.page
