from __future__ import annotations

from typing import Sequence

from fpdf import FPDF

from tradehub.app.db.models.models_v1 import TradeQuotation, TradeQuotationItem
from tradehub.services.money import currency_exponent, round_money, to_decimal

# Les polices de base FPDF sont latin-1 : montants rendus avec le code ISO
def _amount(value, currency: str) -> str:
    exponent = currency_exponent(currency)
    return f"{currency.upper()} {round_money(value, currency):,.{exponent}f}"


def _latin1(text: str) -> str:
    return text.encode("latin-1", "replace").decode("latin-1")


def render_quotation_pdf(quotation: TradeQuotation, items: Sequence[TradeQuotationItem]) -> bytes:
    cur = quotation.currency
    pdf = FPDF()
    pdf.add_page()

    pdf.set_font("helvetica", "B", 16)
    pdf.cell(0, 10, f"QUOTATION {quotation.quotation_number}", new_x="LMARGIN", new_y="NEXT", align="C")
    pdf.ln(6)

    pdf.set_font("helvetica", size=11)
    pdf.cell(0, 7, _latin1(f"Buyer: {quotation.buyer_email}"), new_x="LMARGIN", new_y="NEXT")
    pdf.cell(0, 7, f"Status: {quotation.status.value.replace('_', ' ').title()}", new_x="LMARGIN", new_y="NEXT")
    if quotation.valid_until:
        pdf.cell(0, 7, f"Valid until: {quotation.valid_until.isoformat()}", new_x="LMARGIN", new_y="NEXT")
    if quotation.delivery_terms:
        pdf.cell(0, 7, f"Delivery terms (Incoterms): {quotation.delivery_terms.value}", new_x="LMARGIN", new_y="NEXT")
    if quotation.payment_terms:
        pdf.cell(0, 7, _latin1(f"Payment terms: {quotation.payment_terms}"), new_x="LMARGIN", new_y="NEXT")
    pdf.ln(5)

    # ---------- LINES ----------
    widths = (12, 86, 20, 36, 36)
    pdf.set_font("helvetica", "B", 10)
    for w, title in zip(widths, ("#", "Description", "Qty", "Unit price", "Line total")):
        pdf.cell(w, 8, title, border=1)
    pdf.ln()

    pdf.set_font("helvetica", size=10)
    for it in items:
        pdf.cell(widths[0], 8, str(it.line_number), border=1)
        pdf.cell(widths[1], 8, _latin1(it.description[:48]), border=1)
        pdf.cell(widths[2], 8, str(it.quantity), border=1, align="R")
        pdf.cell(widths[3], 8, _amount(it.unit_price, cur), border=1, align="R")
        pdf.cell(widths[4], 8, _amount(it.line_total, cur), border=1, align="R")
        pdf.ln()
    pdf.ln(4)

    # ---------- TOTALS ----------
    rows = [
        ("Subtotal", quotation.subtotal),
        ("Tax", quotation.tax_amount),
        ("Shipping", quotation.shipping_amount),
        ("Total", quotation.total),
        (f"Deposit ({to_decimal(quotation.deposit_percentage).normalize():f}%)", quotation.deposit_amount),
        ("Balance", quotation.balance_amount),
    ]
    for label, value in rows:
        pdf.set_font("helvetica", "B" if label == "Total" else "", 10)
        pdf.cell(154, 7, label, align="R")
        pdf.cell(36, 7, _amount(value, cur), align="R", new_x="LMARGIN", new_y="NEXT")

    return bytes(pdf.output())
