from datetime import date
from decimal import Decimal

from tradehub.app.db.models.core_types import Incoterm
from tradehub.services import quotations
from tradehub.services.documents import render_quotation_pdf
from tradehub.services.pricing import LineItemInput


def test_quotation_pdf_renders(db_session, seller):
    q = quotations.create_quotation(
        db_session,
        seller_id=seller.id,
        buyer_email="achats@importateur.example",
        items=[
            LineItemInput("Vanille de Tahiti, gousses calibrées 16-18cm", Decimal("320.00"), 5),
            LineItemInput("Coffret monoï tiaré 10€", Decimal("1500"), 20),
        ],
        currency="JPY",
        valid_until=date(2031, 6, 30),
        delivery_terms=Incoterm.fob,
        payment_terms="Net 60",
    )

    pdf = render_quotation_pdf(q, quotations.list_line_items(db_session, quotation_id=q.id))

    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 1000
