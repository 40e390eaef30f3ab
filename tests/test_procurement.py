"""Tests for vendor purchase orders."""

from datetime import timedelta

import pytest

from frame_tracker.db.models import MaterialModel, OrderModel, StatusHistoryModel
from frame_tracker.db.services import MaterialService
from frame_tracker.exceptions import ValidationError
from frame_tracker.procurement import (
    DEFAULT_LEAD_DAYS,
    VendorOrderService,
    lead_time_days,
)
from frame_tracker.realtime.events import ChangeEventType
from frame_tracker.schemas.orders import MaterialCreate


@pytest.fixture
def vendors(db_session, notifier, settings):
    return VendorOrderService(db_session, notifier, settings)


@pytest.fixture
def add_material(db_session, notifier):
    service = MaterialService(db_session, notifier)

    def _add(order, **fields):
        fields.setdefault("type", "FRAME")
        return service.create(order.id, MaterialCreate(**fields))

    return _add


class TestLeadTimes:
    def test_known_suppliers(self):
        assert lead_time_days("Roma Moulding") == 7
        assert lead_time_days("larson juhl ") == 10
        assert lead_time_days("Franks Fabrics") == 21

    def test_unknown_or_missing_supplier_uses_default(self):
        assert lead_time_days("Corner Hardware") == DEFAULT_LEAD_DAYS
        assert lead_time_days(None) == DEFAULT_LEAD_DAYS


class TestPurchaseOrders:
    def test_grouped_by_supplier(self, vendors, make_order, add_material, now):
        first = make_order()
        second = make_order()
        add_material(first, subtype="R1234", supplier="Roma Moulding", cost=42.5)
        add_material(second, subtype="R9", supplier="Roma Moulding", cost=30)
        add_material(first, type="GLASS", supplier="Guardian Glass", cost=120)

        purchase_orders = vendors.purchase_orders(now)

        assert [po.supplier for po in purchase_orders] == [
            "Guardian Glass",
            "Roma Moulding",
        ]
        roma = purchase_orders[1]
        assert roma.total_amount == 72.5
        assert roma.lead_days == 7
        assert roma.estimated_delivery == now + timedelta(days=7)
        assert sorted(roma.order_ids) == sorted([first.id, second.id])
        assert purchase_orders[0].estimated_delivery == now + timedelta(days=14)

    def test_only_open_lines_of_processed_orders(
        self, vendors, make_order, add_material, now
    ):
        processed = make_order()
        cutting = make_order(status="FRAME_CUT")
        add_material(processed, supplier="Crescent", cost=15)
        add_material(processed, supplier="Crescent", ordered=True, cost=99)
        add_material(processed, supplier="Crescent", arrived=True, cost=99)
        add_material(cutting, supplier="Crescent", cost=99)

        purchase_orders = vendors.purchase_orders(now)

        assert len(purchase_orders) == 1
        assert purchase_orders[0].total_amount == 15
        assert [line.order_id for line in purchase_orders[0].lines] == [processed.id]

    def test_missing_supplier_and_cost(self, vendors, make_order, add_material, now):
        order = make_order()
        add_material(order, type="HARDWARE")

        (purchase_order,) = vendors.purchase_orders(now)
        assert purchase_order.supplier == "Unassigned"
        assert purchase_order.lead_days == DEFAULT_LEAD_DAYS
        assert purchase_order.total_amount == 0
        assert purchase_order.lines[0].customer_name == "Ada Customer"

    def test_nothing_to_order(self, vendors, make_order, now):
        make_order()
        assert vendors.purchase_orders(now) == []


class TestMarkOrdered:
    def test_moves_status_and_flags_materials(
        self, vendors, make_order, add_material, db_session, events, settings
    ):
        order = make_order()
        frame = add_material(order, supplier="Roma Moulding", cost=40)
        arrived = add_material(order, type="MAT", arrived=True)
        events.clear()

        result = vendors.mark_ordered([order.id], settings.system_actor_id)

        assert result.batch.changed_ids == [order.id]
        assert result.materials_marked == [frame.id]

        db_session.expire_all()
        stored = db_session.get(OrderModel, order.id)
        assert stored.status == "MATERIALS_ORDERED"
        assert db_session.get(MaterialModel, frame.id).ordered is True
        assert db_session.get(MaterialModel, frame.id).ordered_date is not None
        assert db_session.get(MaterialModel, arrived.id).ordered is False

        history = (
            db_session.query(StatusHistoryModel)
            .filter(StatusHistoryModel.order_id == order.id)
            .order_by(StatusHistoryModel.sequence)
            .all()
        )
        assert history[-1].to_status == "MATERIALS_ORDERED"
        assert history[-1].reason == "Materials ordered from vendors"

        assert [e.type for e in events] == [
            ChangeEventType.ORDER_BATCH_STATUS_CHANGED,
            ChangeEventType.MATERIAL_UPDATED,
        ]
        assert events[1].order_ids == (order.id,)

    def test_missing_order_reported_others_applied(
        self, vendors, make_order, add_material, settings, now
    ):
        order = make_order()
        add_material(order, supplier="Crescent")

        result = vendors.mark_ordered(["missing", order.id], settings.system_actor_id)

        assert result.batch.failed_ids == ["missing"]
        assert result.batch.changed_ids == [order.id]
        assert vendors.purchase_orders(now) == []

    def test_unknown_actor_rejected_before_any_change(
        self, vendors, make_order, add_material, db_session
    ):
        order = make_order()
        material = add_material(order)

        with pytest.raises(ValidationError):
            vendors.mark_ordered([order.id], "ghost")

        db_session.expire_all()
        assert db_session.get(OrderModel, order.id).status == "ORDER_PROCESSED"
        assert db_session.get(MaterialModel, material.id).ordered is False


class TestVendorEndpoints:
    def test_list_purchase_orders(self, client, make_order, add_material):
        order = make_order()
        add_material(order, supplier="Bella Moulding", cost=45)
        add_material(order, type="GLASS", supplier="Guardian Glass", cost=800)

        response = client.get("/api/vendor/orders")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["total_amount"] == 845
        assert [po["supplier"] for po in body["purchase_orders"]] == [
            "Bella Moulding",
            "Guardian Glass",
        ]
        bella = body["purchase_orders"][0]
        assert bella["lead_days"] == 5
        assert bella["order_ids"] == [order.id]
        assert bella["lines"][0]["tracking_id"] == order.tracking_id

    def test_mark_ordered(self, client, make_order, add_material):
        order = make_order()
        add_material(order, supplier="Crescent", cost=15)

        response = client.post(
            "/api/vendor/mark-ordered",
            json={"orderIds": [order.id, "missing"], "reason": "PO 1042"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["to_status"] == "MATERIALS_ORDERED"
        assert body["succeeded"] == 1
        assert body["failed"] == 1
        assert len(body["materials_marked"]) == 1

        history = client.get(f"/api/orders/{order.id}/history").json()
        assert history[-1]["reason"] == "PO 1042"
        assert client.get("/api/vendor/orders").json()["purchase_orders"] == []

    def test_mark_ordered_requires_ids(self, client):
        response = client.post("/api/vendor/mark-ordered", json={"orderIds": []})
        assert response.status_code == 422
