"""Printable invoice (factura) rendered from the stored invoice snapshot only."""

from datetime import datetime
from io import BytesIO
from typing import Any, Dict
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER

from comanda.models import Invoice


def _percent(rate: str) -> str:
    try:
        return f"{float(rate) * 100:g}%"
    except (TypeError, ValueError):
        return str(rate)


def _display_date(value: str) -> str:
    try:
        return datetime.fromisoformat(value).strftime('%d/%m/%Y %H:%M')
    except (TypeError, ValueError):
        return value or ''


def _render_invoice_pdf(data: Dict[str, Any]) -> BytesIO:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75*inch,
        leftMargin=0.75*inch,
        topMargin=0.75*inch,
        bottomMargin=0.75*inch
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'InvoiceTitle',
        parent=styles['Heading1'],
        fontSize=24,
        textColor=colors.HexColor('#2C3E50'),
        spaceAfter=12,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )
    header_style = ParagraphStyle(
        'InvoiceHeader',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#7F8C8D'),
        alignment=TA_CENTER,
        spaceAfter=6
    )
    cell_style = ParagraphStyle('InvoiceCell', parent=styles['Normal'], fontSize=9)

    restaurant = data.get('restaurantInfo') or {}
    sale = data.get('saleInfo') or {}
    summary = data.get('financialSummary') or {}

    # 1. Restaurant header
    elements.append(Paragraph("FACTURA", title_style))
    if restaurant.get('name'):
        elements.append(Paragraph(f"<b>{escape(restaurant['name'])}</b>", header_style))
    if restaurant.get('address'):
        elements.append(Paragraph(escape(restaurant['address']), header_style))
    if restaurant.get('taxId'):
        elements.append(Paragraph(f"ID fiscal: {escape(restaurant['taxId'])}", header_style))
    elements.append(Spacer(1, 0.3*inch))

    # 2. Sale metadata
    info_rows = [
        ['Factura N°:', sale.get('invoiceNumber', '')],
        ['Fecha:', _display_date(sale.get('date'))],
        ['Mesa:', sale.get('tableName') or '—'],
        ['Mesero:', sale.get('waiterName') or '—'],
        ['Pedido:', str(sale.get('orderId', ''))],
    ]
    split = data.get('split')
    if split:
        info_rows.append(['Cuenta dividida:', f"{split['index']} de {split['count']}"])

    info_table = Table(info_rows, colWidths=[2*inch, 3*inch])
    info_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
        ('ALIGN', (1, 0), (1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#34495E')),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.3*inch))

    # 3. Items
    rows = [['Producto', 'Cantidad', 'Precio Unit.', 'Total']]
    for item in data.get('items', []):
        description = f"<b>{escape(item.get('productName') or '')}</b>"
        for modifier in item.get('modifiers') or []:
            description += f"<br/>+ {escape(modifier.get('name') or '')} (${modifier.get('price')})"
        if item.get('notes'):
            description += f"<br/><i>{escape(item['notes'])}</i>"
        rows.append([
            Paragraph(description, cell_style),
            str(item.get('quantity')),
            f"${item.get('unitPrice')}",
            f"${item.get('itemTotal')}",
        ])

    items_table = Table(rows, colWidths=[3.7*inch, 0.8*inch, 1.1*inch, 1.1*inch])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#3498DB')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 12),
        ('VALIGN', (0, 1), (-1, -1), 'TOP'),
        ('ALIGN', (1, 1), (1, -1), 'CENTER'),
        ('ALIGN', (2, 1), (3, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#BDC3C7')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#ECF0F1')]),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    # 4. Financial summary
    summary_rows = [
        ['Subtotal:', f"${summary.get('subtotal')}"],
        [f"Impuesto ({_percent(summary.get('taxRate'))}):", f"${summary.get('taxAmount')}"],
        [f"Servicio ({_percent(summary.get('serviceChargeRate'))}):", f"${summary.get('serviceChargeAmount')}"],
    ]
    summary_table = Table(summary_rows, colWidths=[5.6*inch, 1.1*inch])
    summary_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#34495E')),
    ]))
    elements.append(summary_table)

    total_table = Table([['TOTAL:', f"${summary.get('grandTotal')}"]], colWidths=[5.6*inch, 1.1*inch])
    total_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTNAME', (0, 0), (-1, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 14),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#27AE60')),
        ('BACKGROUND', (0, 0), (-1, -1), colors.HexColor('#E8F8F5')),
        ('BOX', (0, 0), (-1, -1), 2, colors.HexColor('#27AE60')),
    ]))
    elements.append(total_table)
    elements.append(Spacer(1, 0.4*inch))

    footer_style = ParagraphStyle('Footer', parent=styles['Normal'], fontSize=9, textColor=colors.HexColor('#95A5A6'), alignment=TA_CENTER)
    elements.append(Paragraph("¡Gracias por su visita!", footer_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer


def render_invoice_pdf(invoice: Invoice) -> BytesIO:
    """PDF of an issued invoice. Reads nothing but invoice.invoice_data."""
    return _render_invoice_pdf(invoice.invoice_data or {})
