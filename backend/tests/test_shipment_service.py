# Overview: Pytest coverage for shipment upsert and the shipment -> order status cascade.

from datetime import datetime

import pytest

from liveseller.models import Order
from liveseller.services import claim_order_service, order_service, payment_service, shipment_service
from liveseller.validation import NotFoundError, ValidationError


@pytest.fixture
def order(db_session, live_session, make_item, make_claim):
    item = make_item(reserved=1, price=1000)
    make_claim(live_session, item, name="Ana")
    claim_order_service.build_orders_from_claims(live_session.id)
    return db_session.query(Order).one()


class TestShipmentCascade:
    def test_in_transit_then_delivered(self, order):
        """Paid + IN_TRANSIT -> SHIPPED; DELIVERED -> DELIVERED; later fee edits keep status."""
        payment_service.record_payment(order.id, 1000, "GCASH")

        result = shipment_service.create_or_update_shipment(
            order.id, {"courier": "J&T", "tracking_number": "JT1", "status": "IN_TRANSIT"}
        )
        assert result["order"].status == "SHIPPED"
        assert result["shipment"].ship_date is not None

        result = shipment_service.update_shipment_status(result["shipment"].id, "DELIVERED")
        assert result["order"].status == "DELIVERED"
        assert result["shipment"].delivery_date is not None

        order = order_service.update_order_fees(order.id, other_fees_cents=25)
        assert order.status == "DELIVERED"
        assert order.grand_total_cents == 1025
        assert order.payment_status == "PARTIAL"

    def test_in_transit_unpaid_does_not_ship(self, order):
        result = shipment_service.create_or_update_shipment(order.id, {"status": "BOOKED"})
        assert result["order"].status == "PACKING"

        result = shipment_service.update_shipment_status(result["shipment"].id, "IN_TRANSIT")
        assert result["order"].status == "PACKING"

    def test_fee_is_mirrored_onto_order(self, order):
        result = shipment_service.create_or_update_shipment(order.id, {"shipping_fee_cents": 120})
        assert result["order"].shipping_fee_cents == 120
        assert result["order"].grand_total_cents == 1120

        result = shipment_service.create_or_update_shipment(order.id, {"shipping_fee_cents": 80})
        assert result["order"].grand_total_cents == 1080
        assert shipment_service.get_shipment_for_order(order.id).id == result["shipment"].id

    def test_cascade_never_retreats(self, order):
        payment_service.record_payment(order.id, 1000, "GCASH")
        shipment = shipment_service.create_or_update_shipment(order.id, {"status": "DELIVERED"})["shipment"]

        result = shipment_service.update_shipment_status(shipment.id, "IN_TRANSIT")
        assert result["order"].status == "DELIVERED"

    def test_cancelled_order_skips_cascade(self, order):
        order_service.update_order_status(order.id, "CANCELLED")

        result = shipment_service.create_or_update_shipment(order.id, {"status": "DELIVERED"})

        assert result["order"].status == "CANCELLED"
        assert shipment_service.get_shipment_for_order(order.id).status == "DELIVERED"

    def test_returned_order_notes_edit(self, order):
        payment_service.record_payment(order.id, 1000, "GCASH")
        shipment_service.create_or_update_shipment(order.id, {"status": "DELIVERED"})
        order_service.update_order_status(order.id, "RETURNED")

        result = shipment_service.create_or_update_shipment(order.id, {"notes": "buyer refused, parcel back"})

        assert result["order"].status == "RETURNED"
        assert result["shipment"].notes == "buyer refused, parcel back"
        assert result["shipment"].status == "DELIVERED"

    def test_explicit_dates_win(self, order):
        shipment = shipment_service.create_or_update_shipment(order.id, {})["shipment"]
        when = datetime(2026, 3, 1, 9, 30)

        result = shipment_service.update_shipment_status(shipment.id, "DELIVERED", delivery_date=when)
        assert result["shipment"].delivery_date == when

    def test_invalid_status(self, order):
        with pytest.raises(ValidationError):
            shipment_service.create_or_update_shipment(order.id, {"status": "TELEPORTED"})

    def test_unknown_shipment(self, db_session):
        with pytest.raises(NotFoundError):
            shipment_service.update_shipment_status(5, "DELIVERED")
