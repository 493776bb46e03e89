"""Tests for bill arithmetic and numbering."""

from datetime import date
from decimal import Decimal

import pytest

from ordering.billing import (
    BillLine, calculate_bill, effective_discount_percentage, format_currency, next_bill_number,
)
from ordering.models import Bill

GST = [{'name': 'CGST', 'rate': '2.5'}, {'name': 'SGST', 'rate': '2.5'}]


def bill_line(name, quantity, unit_price):
    unit_price = Decimal(unit_price)
    return BillLine(name=name, quantity=quantity, unit_price=unit_price, total_price=unit_price * quantity)


class TestCalculateBill:
    """Tests for taxes, discount and rounding."""

    def test_tax_exclusive_totals(self):
        calculation = calculate_bill(
            [bill_line('Paneer Tikka', 2, '150.00'), bill_line('Masala Chai', 1, '30.00')], 0, GST
        )
        assert calculation.subtotal == Decimal('330.00')
        assert calculation.total_gst == Decimal('16.50')
        assert calculation.subtotal_with_tax == Decimal('346.50')
        assert calculation.discount_amount == Decimal('0')
        # 346.50 rounds half up to whole rupees
        assert calculation.final_amount == Decimal('347')

    def test_tax_breakdown_per_tax(self):
        calculation = calculate_bill([bill_line('Paneer Tikka', 2, '150.00')], 0, GST)
        assert calculation.tax_breakdown == [
            {'name': 'CGST', 'rate': '2.5', 'amount': '7.50'},
            {'name': 'SGST', 'rate': '2.5', 'amount': '7.50'},
        ]
        assert calculation.items[0]['item_taxes'][0]['amount'] == '7.50'

    def test_discount_applies_after_tax(self):
        calculation = calculate_bill(
            [bill_line('Paneer Tikka', 2, '150.00'), bill_line('Masala Chai', 1, '30.00')], 10, GST
        )
        # 10% of 346.50 = 34.65 -> 35; 346.50 - 35 = 311.50 -> 312
        assert calculation.discount_amount == Decimal('35')
        assert calculation.final_amount == Decimal('312')

    def test_tax_inclusive_recovers_base_price(self):
        calculation = calculate_bill([bill_line('Thali', 1, '105.00')], 0, GST, tax_inclusive=True)
        assert calculation.subtotal == Decimal('100.00')
        assert calculation.total_gst == Decimal('5.00')
        assert calculation.final_amount == Decimal('105')

    def test_no_taxes(self):
        calculation = calculate_bill([bill_line('Naan', 3, '50.00')], 0, [])
        assert calculation.total_gst == Decimal('0')
        assert calculation.final_amount == Decimal('150')

    def test_accepts_tax_setting_rows(self, taxes):
        calculation = calculate_bill([bill_line('Naan', 2, '50.00')], 0, taxes)
        assert calculation.total_gst == Decimal('5.00')
        assert [tax['name'] for tax in calculation.tax_breakdown] == ['CGST', 'SGST']


class TestEffectiveDiscount:

    def test_offer_discount_becomes_percentage(self):
        assert effective_discount_percentage(Decimal('400'), Decimal('50')) == Decimal('12.5')

    def test_manual_percentage_wins(self):
        assert effective_discount_percentage(Decimal('400'), Decimal('50'), 10) == Decimal('10')

    def test_nothing_to_discount(self):
        assert effective_discount_percentage(Decimal('0'), Decimal('50')) == Decimal('0')
        assert effective_discount_percentage(Decimal('400')) == Decimal('0')


@pytest.mark.django_db
class TestBillNumber:

    def test_numbers_restart_each_day(self):
        day = date(2024, 6, 15)
        assert next_bill_number(day) == 'BILL-20240615-001'

        Bill.objects.create(bill_number='BILL-20240615-001')
        Bill.objects.create(bill_number='BILL-20240615-002')
        Bill.objects.create(bill_number='BILL-20240614-009')
        assert next_bill_number(day) == 'BILL-20240615-003'
        assert next_bill_number(date(2024, 6, 16)) == 'BILL-20240616-001'


def test_format_currency():
    assert format_currency(Decimal('1234.5')) == '₹1,234.50'
    assert format_currency(80, symbol='Rs. ') == 'Rs. 80.00'
