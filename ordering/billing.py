import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from io import BytesIO

from django.conf import settings
from django.utils import timezone

from .models import Bill, RestaurantSetting

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
CENT = Decimal('0.01')
RUPEE = Decimal('1')


@dataclass
class BillLine:
    name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    is_manual: bool = False
    order_item_id: int = None


@dataclass
class BillCalculation:
    items: list = field(default_factory=list)
    tax_breakdown: list = field(default_factory=list)
    subtotal: Decimal = ZERO
    taxable_subtotal: Decimal = ZERO
    total_gst: Decimal = ZERO
    subtotal_with_tax: Decimal = ZERO
    discount_amount: Decimal = ZERO
    final_amount: Decimal = ZERO


def _cents(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _rupees(value):
    return Decimal(value).quantize(RUPEE, rounding=ROUND_HALF_UP)


# ============================================================================
# BILL ARITHMETIC
# ============================================================================

def calculate_bill(items, discount_percentage, tax_settings, tax_inclusive=False):
    """
    Per-line base price and taxes, then totals. The discount is taken off the
    taxed total and both discount and final amount are whole rupees.

    `tax_settings` is a sequence of objects or dicts with `name` and `rate`.
    In tax-inclusive mode menu prices already contain tax, so the base price
    is recovered as price / (1 + total_rate / 100).
    """
    taxes = [
        (tax['name'], Decimal(str(tax['rate']))) if isinstance(tax, dict)
        else (tax.name, Decimal(str(tax.rate)))
        for tax in tax_settings
    ]
    total_rate = sum((rate for _, rate in taxes), ZERO)
    discount_percentage = Decimal(str(discount_percentage or 0))

    calculation = BillCalculation()
    per_tax = {name: ZERO for name, _ in taxes}
    subtotal = ZERO
    total_gst = ZERO

    for line in items:
        total_price = Decimal(str(line.total_price))
        if tax_inclusive:
            base_price = total_price / (1 + total_rate / 100)
        else:
            base_price = total_price

        item_taxes = []
        for name, rate in taxes:
            amount = _cents(base_price * rate / 100)
            item_taxes.append({'name': name, 'rate': str(rate), 'amount': str(amount)})
            per_tax[name] += amount
            total_gst += amount

        base_price = _cents(base_price)
        subtotal += base_price
        calculation.items.append({
            'name': line.name,
            'quantity': line.quantity,
            'unit_price': str(line.unit_price),
            'total_price': str(total_price),
            'base_price': str(base_price),
            'is_manual': line.is_manual,
            'item_taxes': item_taxes,
        })

    subtotal_with_tax = subtotal + total_gst
    discount_amount = _rupees(subtotal_with_tax * discount_percentage / 100)

    calculation.tax_breakdown = [
        {'name': name, 'rate': str(rate), 'amount': str(_cents(per_tax[name]))}
        for name, rate in taxes
    ]
    calculation.subtotal = _cents(subtotal)
    calculation.taxable_subtotal = _cents(subtotal)
    calculation.total_gst = _cents(total_gst)
    calculation.subtotal_with_tax = _cents(subtotal_with_tax)
    calculation.discount_amount = discount_amount
    calculation.final_amount = _rupees(subtotal_with_tax - discount_amount)
    return calculation


def effective_discount_percentage(items_total, offer_discount=None, discount_percentage=None):
    """
    A manual percentage wins; otherwise an offer's rupee discount is expressed
    as a percentage of the items total.
    """
    if discount_percentage:
        return Decimal(str(discount_percentage))
    items_total = Decimal(str(items_total or 0))
    if offer_discount and items_total > 0:
        return Decimal(str(offer_discount)) / items_total * 100
    return ZERO


def next_bill_number(day=None):
    """BILL-YYYYMMDD-NNN, numbered from 001 each day."""
    day = day or timezone.localdate()
    prefix = f"BILL-{day.strftime('%Y%m%d')}-"
    numbers = Bill.objects.filter(bill_number__startswith=prefix).values_list('bill_number', flat=True)
    last = max((int(number[len(prefix):]) for number in numbers), default=0)
    return f"{prefix}{last + 1:03d}"


def format_currency(amount, symbol=None):
    if symbol is None:
        symbol = settings.QRDINE['CURRENCY_SYMBOL']
    return f"{symbol}{Decimal(str(amount or 0)):,.2f}"


def receipt_settings():
    """Receipt header values; RestaurantSetting rows override settings.QRDINE."""
    config = settings.QRDINE
    return {
        'restaurant_name': RestaurantSetting.get_value('restaurant_name', config['RESTAURANT_NAME']),
        'restaurant_address': RestaurantSetting.get_value('restaurant_address', config['RESTAURANT_ADDRESS']),
        'restaurant_phone': RestaurantSetting.get_value('restaurant_phone', config['RESTAURANT_PHONE']),
        'gst_number': RestaurantSetting.get_value('gst_number', config['GST_NUMBER']),
    }


# ============================================================================
# PDF EXPORT
# ============================================================================

def render_bill_pdf(bill):
    """Render a bill as an A4 PDF and return the buffer positioned at 0."""
    from reportlab.lib import colors
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
    from reportlab.lib.units import cm, mm
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

    # Base-14 fonts have no rupee glyph
    def money(amount):
        return format_currency(amount, symbol='Rs. ')

    header = receipt_settings()
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=10 * mm,
        rightMargin=10 * mm,
        topMargin=10 * mm,
        bottomMargin=10 * mm,
        title=bill.bill_number,
    )
    story = []
    styles = getSampleStyleSheet()

    header_style = ParagraphStyle(
        'BillHeader',
        parent=styles['Heading1'],
        fontSize=18,
        textColor=colors.HexColor('#333333'),
        spaceAfter=6,
        alignment=1,
    )
    subtitle_style = ParagraphStyle(
        'BillSubtitle',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#666666'),
        spaceAfter=3,
        alignment=1,
    )

    story.append(Paragraph(header['restaurant_name'], header_style))
    if header['restaurant_address']:
        story.append(Paragraph(header['restaurant_address'], subtitle_style))
    if header['restaurant_phone']:
        story.append(Paragraph(f"Phone: {header['restaurant_phone']}", subtitle_style))
    if header['gst_number']:
        story.append(Paragraph(f"GSTIN {header['gst_number']}", subtitle_style))
    story.append(Paragraph('Tax Invoice', subtitle_style))
    story.append(Spacer(1, 8 * mm))

    if bill.is_takeaway:
        order = bill.order
        served_at = 'Takeaway'
        customer = order.customer_name or order.customer_phone if order else ''
    else:
        served_at = f"Table {bill.table.table_number}"
        customer = bill.session.customer_phone

    info_data = [
        [Paragraph('<b>Bill Number:</b>', styles['Normal']), Paragraph(f'<b>{bill.bill_number}</b>', styles['Normal'])],
        [Paragraph('<b>Served At:</b>', styles['Normal']), Paragraph(served_at, styles['Normal'])],
        [Paragraph('<b>Generated:</b>', styles['Normal']),
         Paragraph(timezone.localtime(bill.generated_at).strftime('%d-%m-%Y %H:%M'), styles['Normal'])],
        [Paragraph('<b>Status:</b>', styles['Normal']), Paragraph(bill.get_payment_status_display().upper(), styles['Normal'])],
    ]
    if customer:
        info_data.append([Paragraph('<b>Customer:</b>', styles['Normal']), Paragraph(customer, styles['Normal'])])
    info_table = Table(info_data, colWidths=[4.5 * cm, 5.5 * cm])
    info_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (0, -1), colors.HexColor('#f0f0f0')),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('LEFTPADDING', (0, 0), (-1, -1), 6),
        ('RIGHTPADDING', (0, 0), (-1, -1), 6),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#cccccc')),
    ]))
    story.append(info_table)
    story.append(Spacer(1, 6 * mm))

    items_data = [[
        Paragraph('<b>Item</b>', styles['Normal']),
        Paragraph('<b>Qty</b>', styles['Normal']),
        Paragraph('<b>Price</b>', styles['Normal']),
        Paragraph('<b>Total</b>', styles['Normal'])
    ]]
    has_manual = False
    for item in bill.items.filter(is_cancelled=False):
        name = item.item_name
        if item.is_manual:
            name += ' *'
            has_manual = True
        items_data.append([
            Paragraph(name, styles['Normal']),
            Paragraph(str(item.quantity), styles['Normal']),
            Paragraph(money(item.unit_price), styles['Normal']),
            Paragraph(money(item.total_price), styles['Normal'])
        ])
    items_table = Table(items_data, colWidths=[8 * cm, 2 * cm, 3 * cm, 3 * cm])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#333333')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#cccccc')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f9f9f9')]),
    ]))
    story.append(items_table)
    if has_manual:
        story.append(Paragraph('* Manual entry', styles['Italic']))
    story.append(Spacer(1, 6 * mm))

    summary_data = [[Paragraph('Subtotal:', styles['Normal']), Paragraph(money(bill.subtotal), styles['Normal'])]]
    for tax in bill.tax_breakdown:
        summary_data.append([
            Paragraph(f"{tax['name']} @ {tax['rate']}%:", styles['Normal']),
            Paragraph(money(tax['amount']), styles['Normal'])
        ])
    summary_data.append([Paragraph('Total GST:', styles['Normal']), Paragraph(money(bill.total_tax_amount), styles['Normal'])])
    if bill.discount_amount > 0:
        label = f"Discount ({bill.applied_offer.name})" if bill.applied_offer_id else f"Discount ({bill.discount_percentage}%)"
        summary_data.append([Paragraph('Total Before Discount:', styles['Normal']),
                             Paragraph(money(bill.subtotal_with_tax), styles['Normal'])])
        summary_data.append([Paragraph(f'{label}:', styles['Normal']),
                             Paragraph(f'-{money(bill.discount_amount)}', styles['Normal'])])
    summary_data.append([Paragraph('<b>Grand Total:</b>', styles['Normal']),
                         Paragraph(f'<b>{money(bill.final_amount)}</b>', styles['Normal'])])

    summary_table = Table(summary_data, colWidths=[12 * cm, 4 * cm])
    summary_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('LINEABOVE', (0, 0), (-1, 0), 1, colors.HexColor('#666666')),
        ('LINEABOVE', (0, -1), (-1, -1), 2, colors.HexColor('#000000')),
        ('BACKGROUND', (0, -1), (-1, -1), colors.HexColor('#f0f0f0')),
    ]))
    story.append(summary_table)
    story.append(Spacer(1, 8 * mm))

    footer_style = ParagraphStyle(
        'BillFooter',
        parent=styles['Normal'],
        fontSize=9,
        textColor=colors.HexColor('#666666'),
        alignment=1,
    )
    if bill.payment_status == 'paid':
        story.append(Paragraph(f'Payment: <b>{bill.get_payment_method_display().upper()}</b>', footer_style))
        story.append(Paragraph(
            f'Paid on: {timezone.localtime(bill.paid_at).strftime("%d-%m-%Y %H:%M")}', footer_style
        ))
    story.append(Paragraph('THANK YOU! VISIT AGAIN!', footer_style))

    doc.build(story)
    buffer.seek(0)
    logger.info(f"Rendered PDF for bill {bill.bill_number}")
    return buffer
