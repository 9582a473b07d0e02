# Overview: Pytest coverage for stock adjustment, overdraw policy, price resolution and catalog.

import pytest

from liveseller.models import InventoryItem, LedgerEvent
from liveseller.services import inventory_service
from liveseller.services.inventory_service import InsufficientStockError
from liveseller.validation import ConflictError, NotFoundError, ValidationError


def _events(db_session, event_type):
    return db_session.query(LedgerEvent).filter_by(event_type=event_type).all()


class TestAdjustStock:
    def test_consume_reservation(self, db_session, make_item):
        """Building a claim of 3 moves 10/3 to 7/0."""
        item = make_item(current=10, reserved=3)

        inventory_service.adjust_stock(item.id, current_delta=-3, reserved_delta=-3)

        item = db_session.get(InventoryItem, item.id)
        assert item.current_stock == 7
        assert item.reserved_stock == 0
        assert len(_events(db_session, "inventory.adjusted")) == 1

    def test_clamp_policy_stops_at_zero_and_records_event(self, db_session, make_item):
        item = make_item(current=2, reserved=1)

        inventory_service.adjust_stock(item.id, current_delta=-5, reserved_delta=-4)

        item = db_session.get(InventoryItem, item.id)
        assert item.current_stock == 0
        assert item.reserved_stock == 0
        clamped = _events(db_session, "inventory.clamped")
        assert len(clamped) == 1
        assert clamped[0].entity_id == item.id

    def test_counters_clamp_independently(self, db_session, make_item):
        item = make_item(current=5, reserved=0)

        inventory_service.adjust_stock(item.id, current_delta=-1, reserved_delta=-1)

        item = db_session.get(InventoryItem, item.id)
        assert item.current_stock == 4
        assert item.reserved_stock == 0

    def test_reject_policy_raises_and_writes_nothing(self, app, db_session, make_item, monkeypatch):
        monkeypatch.setitem(app.config, "STOCK_OVERDRAW_POLICY", "reject")
        item = make_item(current=2, reserved=0)

        with pytest.raises(InsufficientStockError):
            inventory_service.adjust_stock(item.id, current_delta=-3)

        item = db_session.get(InventoryItem, item.id)
        assert item.current_stock == 2
        assert db_session.query(LedgerEvent).filter_by(event_category="inventory").count() == 0

    def test_unknown_item(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.adjust_stock(999, current_delta=1)

    def test_non_integer_delta_rejected(self, db_session, make_item):
        item = make_item()
        with pytest.raises(ValidationError):
            inventory_service.adjust_stock(item.id, current_delta=1.5)

    def test_variant_stock_tracks_available_units(self, db_session, make_item):
        """Reserving takes a unit from the variant; consuming the reservation leaves it alone."""
        item = make_item(current=3, variants=[{"label": "M", "stock": 3}])
        variant_id = item.variants[0].id

        inventory_service.adjust_stock(item.id, reserved_delta=1, variant_id=variant_id)
        item = db_session.get(InventoryItem, item.id)
        assert item.variants[0].stock == 2

        inventory_service.adjust_stock(item.id, current_delta=-1, reserved_delta=-1, variant_id=variant_id)
        item = db_session.get(InventoryItem, item.id)
        assert item.variants[0].stock == 2
        assert item.current_stock == 2
        assert item.reserved_stock == 0


class TestPricing:
    def test_variant_override_wins(self, db_session, make_item):
        item = make_item(cost=100, price=500, variants=[
            {"label": "XL", "stock": 1, "cost_price_cents": 150, "selling_price_cents": 650},
            {"label": "S", "stock": 1},
        ])
        xl, small = item.variants

        assert inventory_service.resolve_effective_price(item, xl.id) == (150, 650)
        assert inventory_service.resolve_effective_price(item, small.id) == (100, 500)
        assert inventory_service.resolve_effective_price(item, None) == (100, 500)
        assert inventory_service.resolve_effective_price(item, 12345) == (100, 500)

    def test_stock_status(self, db_session, make_item):
        assert inventory_service.get_stock_status(make_item("A", current=0)) == "OUT"
        assert inventory_service.get_stock_status(make_item("B", current=2, threshold=3)) == "LOW"
        assert inventory_service.get_stock_status(make_item("C", current=9, threshold=3)) == "OK"


class TestCatalog:
    def test_create_with_variants_sums_stock(self, db_session):
        item = inventory_service.create_inventory_item({
            "item_code": "D-001",
            "name": "Floral dress",
            "cost_price_cents": 15000,
            "selling_price_cents": 35000,
            "initial_stock": 99,
            "variants": [{"label": "S", "stock": 2}, {"label": "M", "stock": 3}],
        })

        assert item.initial_stock == 5
        assert item.current_stock == 5
        assert item.reserved_stock == 0
        assert [v.label for v in item.variants] == ["S", "M"]
        assert len(_events(db_session, "inventory.item_created")) == 1

    def test_duplicate_code_is_case_insensitive(self, db_session, make_item):
        make_item("D-001")
        with pytest.raises(ConflictError):
            inventory_service.create_inventory_item({"item_code": "d-001", "name": "Other"})

    def test_missing_required_fields(self, db_session):
        with pytest.raises(ValidationError):
            inventory_service.create_inventory_item({"name": "No code"})

    def test_negative_price_rejected(self, db_session):
        with pytest.raises(ValidationError):
            inventory_service.create_inventory_item(
                {"item_code": "X", "name": "X", "selling_price_cents": -1}
            )

    def test_update_cannot_touch_stock(self, db_session, make_item):
        item = make_item()
        with pytest.raises(ValidationError):
            inventory_service.update_inventory_item(item.id, {"current_stock": 50})

        updated = inventory_service.update_inventory_item(item.id, {"name": "Renamed"})
        assert updated.name == "Renamed"

    def test_search_and_low_stock(self, db_session, make_item):
        make_item("BAG-1", name="Leather bag", current=1, threshold=2)
        make_item("SHOE-1", name="Sneakers", current=20, threshold=2)

        assert [i.item_code for i in inventory_service.list_inventory_items(search="bag")] == ["BAG-1"]
        assert [i.item_code for i in inventory_service.list_low_stock_items()] == ["BAG-1"]
