"""API tests for Frame Tracker."""

from datetime import datetime, timedelta, timezone

from frame_tracker.api import app
from frame_tracker.config import get_settings


def _create_customer(client, email="ada@example.com", name="Ada Customer"):
    response = client.post("/api/customers", json={"name": name, "email": email})
    assert response.status_code == 201
    return response.json()["customer"]


def _create_order(client, customer_id, now, **extra):
    payload = {
        "customerId": customer_id,
        "dueDate": (now + timedelta(days=10)).isoformat(),
        "estimatedHours": 2.5,
        "description": "Watercolour, 12x16",
    }
    payload.update(extra)
    response = client.post("/api/orders", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["order"]


class TestSystemEndpoints:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}
        assert client.get("/healthz").json() == {"status": "ok"}

    def test_version(self, client):
        response = client.get("/version")
        assert response.status_code == 200
        assert "version" in response.json()


class TestUserEndpoints:
    def test_create_and_list(self, client):
        response = client.post(
            "/api/users", json={"email": "Sam@Shop.local", "role": "admin"}
        )
        assert response.status_code == 201
        assert response.json()["user"]["role"] == "ADMIN"

        users = client.get("/api/users").json()
        assert [u["email"] for u in users] == ["sam@shop.local"]


class TestCustomerEndpoints:
    def test_create_normalizes_email(self, client):
        customer = _create_customer(client, email="  Ada@Example.COM ")
        assert customer["email"] == "ada@example.com"

    def test_duplicate_email_is_409(self, client):
        _create_customer(client)
        response = client.post(
            "/api/customers", json={"name": "Copy", "email": "ADA@example.com"}
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    def test_invalid_email_is_422(self, client):
        response = client.post(
            "/api/customers", json={"name": "Bad", "email": "nope"}
        )
        assert response.status_code == 422

    def test_get_update_and_missing(self, client):
        customer = _create_customer(client)
        response = client.patch(
            f"/api/customers/{customer['id']}", json={"phone": "555-0123"}
        )
        assert response.json()["customer"]["phone"] == "555-0123"
        assert client.get(f"/api/customers/{customer['id']}").status_code == 200

        missing = client.get("/api/customers/missing")
        assert missing.status_code == 404
        assert missing.json()["error"]["details"]["entity_kind"] == "customer"

    def test_customer_orders(self, client, now):
        customer = _create_customer(client)
        _create_order(client, customer["id"], now)
        orders = client.get(f"/api/customers/{customer['id']}/orders").json()
        assert len(orders) == 1


class TestOrderEndpoints:
    def test_create_order(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)

        assert order["status"] == "ORDER_PROCESSED"
        assert order["priority"] == "MEDIUM"
        assert order["tracking_id"].startswith("JF")
        assert order["customer"]["id"] == customer["id"]
        assert len(order["status_history"]) == 1

    def test_create_for_unknown_customer_is_404(self, client, now):
        response = client.post(
            "/api/orders",
            json={
                "customerId": "missing",
                "dueDate": now.isoformat(),
                "estimatedHours": 1,
            },
        )
        assert response.status_code == 404

    def test_unknown_fields_rejected(self, client, now):
        customer = _create_customer(client)
        response = client.post(
            "/api/orders",
            json={
                "customerId": customer["id"],
                "dueDate": now.isoformat(),
                "estimatedHours": 1,
                "colour": "red",
            },
        )
        assert response.status_code == 422

    def test_list_and_filter(self, client, now):
        customer = _create_customer(client)
        first = _create_order(client, customer["id"], now)
        _create_order(client, customer["id"], now, status="FRAME_CUT")

        assert len(client.get("/api/orders").json()) == 2
        frame_cut = client.get("/api/orders", params={"status": "frame_cut"}).json()
        assert len(frame_cut) == 1
        assert client.get(f"/api/orders/{first['id']}").json()["id"] == first["id"]

    def test_patch_cannot_change_status(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)
        response = client.patch(
            f"/api/orders/{order['id']}", json={"status": "COMPLETED"}
        )
        assert response.status_code == 422

    def test_patch_fields(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)
        response = client.patch(
            f"/api/orders/{order['id']}",
            json={"priority": "urgent", "internalNotes": "Fragile glass"},
        )
        assert response.status_code == 200
        assert response.json()["order"]["priority"] == "URGENT"
        assert response.json()["order"]["internal_notes"] == "Fragile glass"

    def test_patch_null_required_field_is_422(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)

        response = client.patch(
            f"/api/orders/{order['id']}", json={"estimatedHours": None}
        )
        assert response.status_code == 422
        stored = client.get(f"/api/orders/{order['id']}").json()
        assert stored["estimated_hours"] == 2.5

    def test_patch_can_clear_optional_field(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now, notes="Float mount")
        response = client.patch(f"/api/orders/{order['id']}", json={"notes": None})
        assert response.status_code == 200
        assert response.json()["order"]["notes"] is None

    def test_offset_due_date_stored_as_utc(self, client, now):
        customer = _create_customer(client)
        due = datetime(2026, 11, 2, 17, 0, tzinfo=timezone(timedelta(hours=5)))
        order = _create_order(client, customer["id"], now, dueDate=due.isoformat())

        stored = client.get(f"/api/orders/{order['id']}").json()
        assert datetime.fromisoformat(stored["due_date"]).replace(
            tzinfo=timezone.utc
        ) == datetime(2026, 11, 2, 12, 0, tzinfo=timezone.utc)

    def test_terminal_create_stamps_timestamps(self, client, now):
        customer = _create_customer(client)
        completed = _create_order(client, customer["id"], now, status="COMPLETED")
        collected = _create_order(client, customer["id"], now, status="PICKED_UP")

        assert completed["completed_at"] is not None
        assert completed["picked_up_at"] is None
        assert collected["completed_at"] is not None
        assert collected["picked_up_at"] is not None

    def test_missing_order_is_404(self, client):
        assert client.get("/api/orders/missing").status_code == 404


class TestStatusEndpoints:
    def test_status_update_and_history(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)

        response = client.patch(
            f"/api/orders/{order['id']}/status",
            json={"status": "materials_ordered", "reason": "Ordered oak"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["changed"] is True
        assert body["from_status"] == "ORDER_PROCESSED"
        assert body["order"]["status"] == "MATERIALS_ORDERED"

        history = client.get(f"/api/orders/{order['id']}/history").json()
        assert [h["to_status"] for h in history] == [
            "ORDER_PROCESSED",
            "MATERIALS_ORDERED",
        ]
        assert history[-1]["reason"] == "Ordered oak"
        assert history[-1]["changed_by"] == "system"

    def test_same_status_reports_unchanged(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)
        response = client.patch(
            f"/api/orders/{order['id']}/status", json={"status": "ORDER_PROCESSED"}
        )
        assert response.status_code == 200
        assert response.json()["changed"] is False

    def test_unknown_status_is_422(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)
        response = client.patch(
            f"/api/orders/{order['id']}/status", json={"status": "SHIPPED"}
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unknown_order_is_404(self, client):
        response = client.patch(
            "/api/orders/missing/status", json={"status": "FRAME_CUT"}
        )
        assert response.status_code == 404

    def test_acting_user_header(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)
        user = client.post("/api/users", json={"email": "sam@shop.local"}).json()["user"]

        response = client.patch(
            f"/api/orders/{order['id']}/status",
            json={"status": "FRAME_CUT"},
            headers={"X-User-Id": user["id"]},
        )
        assert response.json()["history"]["changed_by"] == user["id"]

        rejected = client.patch(
            f"/api/orders/{order['id']}/status",
            json={"status": "MAT_CUT"},
            headers={"X-User-Id": "ghost"},
        )
        assert rejected.status_code == 422

    def test_strict_pipeline_conflict(self, client, now, settings):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)
        strict = settings.model_copy(update={"strict_pipeline": True})
        app.dependency_overrides[get_settings] = lambda: strict

        response = client.patch(
            f"/api/orders/{order['id']}/status", json={"status": "COMPLETED"}
        )
        assert response.status_code == 409
        assert response.json()["error"]["details"]["to_status"] == "COMPLETED"

    def test_batch_status(self, client, now):
        customer = _create_customer(client)
        first = _create_order(client, customer["id"], now)
        second = _create_order(client, customer["id"], now)

        response = client.patch(
            "/api/orders/batch-status",
            json={
                "orderIds": [first["id"], second["id"], "missing"],
                "status": "FRAME_CUT",
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["succeeded"] == 2
        assert body["failed"] == 1
        assert body["changed_ids"] == [first["id"], second["id"]]

    def test_batch_requires_ids(self, client):
        response = client.patch(
            "/api/orders/batch-status", json={"orderIds": [], "status": "FRAME_CUT"}
        )
        assert response.status_code == 422


class TestPriorityEndpoints:
    def test_batch_priority(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)
        response = client.patch(
            "/api/orders/batch-priority",
            json={"orderIds": [order["id"]], "priority": "HIGH"},
        )
        assert response.json()["updated_count"] == 1

    def test_auto_assign(self, client, now):
        customer = _create_customer(client)
        _create_order(
            client, customer["id"], now, dueDate=(now + timedelta(hours=3)).isoformat()
        )
        response = client.post("/api/orders/auto-assign-priorities")
        assert response.status_code == 200
        assert response.json()["updates"][0]["to_priority"] == "URGENT"


class TestMysteryEndpoint:
    def test_intake(self, client):
        payload = {"items": [{"trackingId": "MYS-100", "location": "Drawer B"}]}
        response = client.post("/api/orders/mystery", json=payload)
        assert response.status_code == 201
        body = response.json()
        assert body["created"][0]["status"] == "MYSTERY_UNCLAIMED"
        assert body["skipped"] == []

        again = client.post("/api/orders/mystery", json=payload).json()
        assert again["created"] == []
        assert again["skipped"] == ["MYS-100"]


class TestMaterialEndpoints:
    def test_material_lifecycle(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)

        created = client.post(
            f"/api/orders/{order['id']}/materials",
            json={"type": "mat", "subtype": "Ivory 4-ply"},
        )
        assert created.status_code == 201
        material = created.json()["material"]
        assert material["procurement_state"] == "NOT_ORDERED"

        updated = client.patch(
            f"/api/materials/{material['id']}", json={"ordered": True}
        ).json()["material"]
        assert updated["procurement_state"] == "ORDERED"
        assert updated["ordered_date"] is not None

        listed = client.get(f"/api/orders/{order['id']}/materials").json()
        assert len(listed) == 1

    def test_missing_material_is_404(self, client):
        response = client.patch("/api/materials/missing", json={"ordered": True})
        assert response.status_code == 404


class TestCustomerPortal:
    def test_track_hides_staff_fields(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now, internalNotes="Cheap glass")

        response = client.get(f"/api/customer/track/{order['tracking_id']}")
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == order["id"]
        assert "internal_notes" not in body

    def test_track_unknown(self, client):
        assert client.get("/api/customer/track/JF0000000000").status_code == 404

    def test_orders_by_email(self, client, now):
        customer = _create_customer(client)
        _create_order(client, customer["id"], now)
        response = client.get("/api/customer/orders/ADA@example.com")
        assert response.status_code == 200
        assert len(response.json()) == 1
        assert client.get("/api/customer/orders/who@example.com").status_code == 404


class TestKanbanEndpoints:
    def test_columns(self, client):
        columns = client.get("/api/kanban/columns").json()["columns"]
        assert len(columns) == 10
        assert columns[0]["status"] == "ORDER_PROCESSED"

    def test_board_and_drop(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)

        response = client.post(
            f"/api/kanban/orders/{order['id']}/drop", json={"status": "FRAME_CUT"}
        )
        assert response.status_code == 200
        assert response.json()["changed"] is True

        board = client.get("/api/kanban/board").json()
        assert board["total"] == 1
        frame_cut = next(c for c in board["columns"] if c["status"] == "FRAME_CUT")
        assert [o["id"] for o in frame_cut["orders"]] == [order["id"]]
        assert "status_history" not in frame_cut["orders"][0]

    def test_drop_unknown_status(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)
        response = client.post(
            f"/api/kanban/orders/{order['id']}/drop", json={"status": "LIMBO"}
        )
        assert response.status_code == 422


class TestAnalyticsEndpoints:
    def test_workload(self, client, now):
        customer = _create_customer(client)
        _create_order(client, customer["id"], now)
        _create_order(
            client, customer["id"], now, dueDate=(now - timedelta(days=1)).isoformat()
        )

        body = client.get("/api/analytics/workload").json()
        assert body["total_orders"] == 2
        assert body["overdue_count"] == 1
        assert body["total_estimated_hours"] == 5.0
        assert body["risk_level"] == "HIGH"

    def test_offset_due_date_counts_as_overdue(self, client, now):
        customer = _create_customer(client)
        plus_five = timezone(timedelta(hours=5))
        due = (now - timedelta(hours=2)).astimezone(plus_five)
        _create_order(client, customer["id"], now, dueDate=due.isoformat())

        body = client.get("/api/analytics/workload").json()
        assert body["overdue_count"] == 1


class TestOrderLifecycle:
    def test_overdue_order_through_pickup(self, client, now):
        customer = _create_customer(client)
        order = _create_order(
            client, customer["id"], now, dueDate=(now - timedelta(days=1)).isoformat()
        )

        before = client.get("/api/analytics/workload").json()
        assert before["overdue_count"] == 1
        assert before["active_orders"] == 1

        for status in ("MATERIALS_ORDERED", "FRAME_CUT", "COMPLETED", "PICKED_UP"):
            response = client.patch(
                f"/api/orders/{order['id']}/status", json={"status": status}
            )
            assert response.status_code == 200, response.text

        final = client.get(f"/api/orders/{order['id']}").json()
        assert final["status"] == "PICKED_UP"
        assert final["completed_at"] is not None
        assert final["picked_up_at"] is not None

        history = client.get(f"/api/orders/{order['id']}/history").json()
        assert [h["to_status"] for h in history] == [
            "ORDER_PROCESSED",
            "MATERIALS_ORDERED",
            "FRAME_CUT",
            "COMPLETED",
            "PICKED_UP",
        ]
        assert [h["sequence"] for h in history] == [1, 2, 3, 4, 5]

        after = client.get("/api/analytics/workload").json()
        assert after["overdue_count"] == 0
        assert after["active_orders"] == 0
        assert after["completed_orders"] == 1
        assert after["on_time_percentage"] == 0
        assert after["status_counts"]["PICKED_UP"] == 1

        board = client.get("/api/kanban/board").json()
        picked_up = next(c for c in board["columns"] if c["status"] == "PICKED_UP")
        assert [o["id"] for o in picked_up["orders"]] == [order["id"]]


class TestWebSocket:
    def test_connected_event_and_ping(self, client, now):
        customer = _create_customer(client)
        order = _create_order(client, customer["id"], now)

        with client.websocket_connect("/ws") as websocket:
            assert websocket.receive_json() == {"type": "connected"}

            websocket.send_text("ping")
            assert websocket.receive_json() == {"type": "pong"}

            client.patch(
                f"/api/orders/{order['id']}/status", json={"status": "FRAME_CUT"}
            )
            event = websocket.receive_json()
            assert event["type"] == "order.status_changed"
            assert event["order_ids"] == [order["id"]]
            assert event["new_status"] == "FRAME_CUT"
