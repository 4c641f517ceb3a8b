"""
Production log, stock summary and distinct-value tests.
"""
from datetime import timedelta

import pytest

from flowdash.core.session import UserContext
from flowdash.core.time_utils import utcnow
from flowdash.models import InventoryLog, InventorySummary, Product, RoleEnum
from flowdash.services.inventory_service import EDIT_WINDOW, adjust_summary, can_modify_log

from conftest import auth_headers, make_user


def make_product(db, organization, sku="TWL-1", name="Bath Towel", color="Blue", design="Plain", category="Towels"):
    product = Product(
        organization_id=organization.id,
        name=name,
        sku=sku,
        color=color,
        design=design,
        category=category,
        is_archived=False,
    )
    db.add(product)
    db.commit()
    return product


def stock_of(db, product_id):
    rows = db.query(InventorySummary).filter(InventorySummary.product_id == product_id).all()
    return {(r.quality, r.packaging_type): r.quantity for r in rows}


def log_entry(product_id, produced=10, quality="Premium", packaging_type="Box"):
    return {"product_id": product_id, "produced": produced, "quality": quality, "packaging_type": packaging_type}


@pytest.fixture
def towel(db_session, org):
    return make_product(db_session, org)


@pytest.fixture
def sheet(db_session, org):
    return make_product(db_session, org, sku="SHT-1", name="Bed Sheet", color="White", design="Floral", category="Linen")


# ============================================================================
# STOCK SUMMARY ARITHMETIC
# ============================================================================

class TestAdjustSummary:
    def test_creates_and_accumulates(self, db_session, towel):
        adjust_summary(db_session, towel.id, "Premium", "Box", 5)
        adjust_summary(db_session, towel.id, "Premium", "Box", 7)
        db_session.commit()
        assert stock_of(db_session, towel.id) == {("Premium", "Box"): 12}

    def test_row_removed_at_zero(self, db_session, towel):
        adjust_summary(db_session, towel.id, "Premium", "Box", 5)
        adjust_summary(db_session, towel.id, "Premium", "Box", -5)
        db_session.commit()
        assert stock_of(db_session, towel.id) == {}

    def test_negative_delta_without_row_is_noop(self, db_session, towel):
        adjust_summary(db_session, towel.id, "Premium", "Box", -3)
        db_session.commit()
        assert stock_of(db_session, towel.id) == {}


# ============================================================================
# CREATE LOGS
# ============================================================================

class TestCreateLogs:
    def test_batch_updates_stock(self, client, db_session, towel, staff, staff_headers):
        response = client.post("/api/inventory/logs", headers=staff_headers, json=[
            log_entry(towel.id, 10),
            log_entry(towel.id, 5),
            log_entry(towel.id, 3, packaging_type="Open"),
        ])
        assert response.status_code == 201
        logs = response.json()
        assert len(logs) == 3
        assert logs[0]["username"] == "Fiona Floor"
        assert logs[0]["product_name"] == "Bath Towel"
        assert logs[0]["user_id"] == staff.id

        assert stock_of(db_session, towel.id) == {("Premium", "Box"): 15, ("Premium", "Open"): 3}

    def test_empty_batch_rejected(self, client, staff_headers):
        assert client.post("/api/inventory/logs", headers=staff_headers, json=[]).status_code == 400

    @pytest.mark.parametrize("overrides", [
        {"produced": 0},
        {"produced": -4},
        {"quality": "  "},
        {"product_id": 0},
    ])
    def test_invalid_entry_rejected(self, client, towel, staff_headers, overrides):
        entry = {**log_entry(towel.id), **overrides}
        assert client.post("/api/inventory/logs", headers=staff_headers, json=[entry]).status_code == 422

    def test_other_organization_product_rejected(self, client, db_session, org_b, staff_headers):
        foreign = make_product(db_session, org_b, sku="B-1")
        response = client.post("/api/inventory/logs", headers=staff_headers, json=[log_entry(foreign.id)])
        assert response.status_code == 404
        assert db_session.query(InventoryLog).count() == 0

    def test_batch_is_all_or_nothing(self, client, db_session, towel, staff_headers):
        response = client.post("/api/inventory/logs", headers=staff_headers, json=[
            log_entry(towel.id, 10),
            log_entry(9999, 5),
        ])
        assert response.status_code == 404
        assert db_session.query(InventoryLog).count() == 0
        assert stock_of(db_session, towel.id) == {}


# ============================================================================
# LIST LOGS
# ============================================================================

class TestListLogs:
    @pytest.fixture
    def history(self, client, db_session, org, towel, sheet, staff, staff_headers, admin_headers):
        client.post("/api/inventory/logs", headers=staff_headers, json=[log_entry(towel.id, 10)])
        client.post("/api/inventory/logs", headers=admin_headers, json=[
            log_entry(sheet.id, 4, quality="Standard", packaging_type="Bag"),
        ])
        old = InventoryLog(
            product_id=towel.id, user_id=staff.id, produced=2, quality="Premium", packaging_type="Box",
            created_at=utcnow() - timedelta(days=10),
        )
        db_session.add(old)
        db_session.commit()

    def test_lists_organization_logs_newest_first(self, client, history, staff_headers):
        body = client.get("/api/inventory/logs?getTotal=true", headers=staff_headers).json()
        assert body["totalCount"] == 3
        assert [log["produced"] for log in body["data"]] == [4, 10, 2]

    def test_total_omitted_by_default(self, client, history, staff_headers):
        assert "totalCount" not in client.get("/api/inventory/logs", headers=staff_headers).json()

    @pytest.mark.parametrize("query,expected", [
        ("search=sheet", [4]),
        ("product=Bath%20Towel", [10, 2]),
        ("color=White", [4]),
        ("design=Plain", [10, 2]),
        ("quality=Standard", [4]),
        ("packaging_type=Box", [10, 2]),
    ])
    def test_filters(self, client, history, staff_headers, query, expected):
        data = client.get(f"/api/inventory/logs?{query}", headers=staff_headers).json()["data"]
        assert [log["produced"] for log in data] == expected

    def test_date_range_is_inclusive(self, client, history, staff_headers):
        today = utcnow().date().isoformat()
        data = client.get(f"/api/inventory/logs?startDate={today}&endDate={today}", headers=staff_headers).json()["data"]
        assert sorted(log["produced"] for log in data) == [4, 10]

    def test_my_logs(self, client, history, staff_headers, admin_headers):
        mine = client.get("/api/inventory/logs/me", headers=staff_headers).json()["data"]
        assert sorted(log["produced"] for log in mine) == [2, 10]
        admin_mine = client.get("/api/inventory/logs/me", headers=admin_headers).json()["data"]
        assert [log["produced"] for log in admin_mine] == [4]

    def test_user_filter(self, client, history, staff, admin_headers):
        data = client.get(f"/api/inventory/logs?userId={staff.id}", headers=admin_headers).json()["data"]
        assert sorted(log["produced"] for log in data) == [2, 10]

    def test_other_organization_sees_nothing(self, client, history, admin_b_headers):
        assert client.get("/api/inventory/logs", headers=admin_b_headers).json()["data"] == []


# ============================================================================
# EDIT / DELETE WINDOW
# ============================================================================

class TestModifyLogs:
    @pytest.fixture
    def staff_log(self, client, towel, staff_headers):
        return client.post("/api/inventory/logs", headers=staff_headers, json=[log_entry(towel.id, 10)]).json()[0]

    def age_log(self, db, log_id, hours):
        log = db.query(InventoryLog).filter(InventoryLog.id == log_id).one()
        log.created_at = utcnow() - timedelta(hours=hours)
        db.commit()

    def test_owner_updates_within_window(self, client, db_session, towel, staff_log, staff_headers):
        response = client.put(f"/api/inventory/logs/{staff_log['id']}", headers=staff_headers, json={
            "produced": 6, "quality": "Standard", "packaging_type": "Box",
        })
        assert response.status_code == 200
        assert response.json()["produced"] == 6
        assert stock_of(db_session, towel.id) == {("Standard", "Box"): 6}

    def test_update_quantity_only(self, client, db_session, towel, staff_log, staff_headers):
        response = client.patch(f"/api/inventory/logs/{staff_log['id']}", headers=staff_headers, json={
            "produced": 25, "quality": "Premium", "packaging_type": "Box",
        })
        assert response.status_code == 200
        assert stock_of(db_session, towel.id) == {("Premium", "Box"): 25}

    def test_owner_blocked_after_window(self, client, db_session, staff_log, staff_headers):
        self.age_log(db_session, staff_log["id"], 25)
        response = client.put(f"/api/inventory/logs/{staff_log['id']}", headers=staff_headers, json={
            "produced": 6, "quality": "Premium", "packaging_type": "Box",
        })
        assert response.status_code == 403
        assert client.delete(f"/api/inventory/logs/{staff_log['id']}", headers=staff_headers).status_code == 403

    def test_admin_edits_any_time(self, client, db_session, towel, staff_log, admin_headers):
        self.age_log(db_session, staff_log["id"], 72)
        response = client.delete(f"/api/inventory/logs/{staff_log['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Log deleted successfully"
        assert stock_of(db_session, towel.id) == {}

    def test_other_staff_cannot_touch(self, client, db_session, org, staff_log, keys):
        colleague = make_user(db_session, org, "floor2")
        response = client.delete(f"/api/inventory/logs/{staff_log['id']}", headers=auth_headers(colleague, keys))
        assert response.status_code == 403

    def test_owner_deletes_within_window(self, client, db_session, towel, staff_log, staff_headers):
        assert client.delete(f"/api/inventory/logs/{staff_log['id']}", headers=staff_headers).status_code == 200
        assert db_session.query(InventoryLog).count() == 0
        assert stock_of(db_session, towel.id) == {}

    def test_other_organization_log_not_found(self, client, staff_log, admin_b_headers):
        assert client.delete(f"/api/inventory/logs/{staff_log['id']}", headers=admin_b_headers).status_code == 404

    def test_window_boundary(self):
        now = utcnow()
        staff = UserContext(id=1, username="floor1", role=RoleEnum.FLOOR_STAFF, organization_id=1)
        fresh = InventoryLog(user_id=1, created_at=now - EDIT_WINDOW + timedelta(minutes=1))
        stale = InventoryLog(user_id=1, created_at=now - EDIT_WINDOW)
        assert can_modify_log(fresh, staff, now=now)
        assert not can_modify_log(stale, staff, now=now)

    def test_naive_timestamps_treated_as_utc(self):
        now = utcnow()
        staff = UserContext(id=1, username="floor1", role=RoleEnum.FLOOR_STAFF, organization_id=1)
        log = InventoryLog(user_id=1, created_at=(now - timedelta(hours=1)).replace(tzinfo=None))
        assert can_modify_log(log, staff, now=now)


# ============================================================================
# STOCK OVERVIEW
# ============================================================================

class TestStock:
    @pytest.fixture
    def stocked(self, client, towel, sheet, staff_headers):
        client.post("/api/inventory/logs", headers=staff_headers, json=[
            log_entry(towel.id, 10),
            log_entry(towel.id, 4, quality="Standard", packaging_type="Open"),
        ])

    def test_grouped_by_product(self, client, stocked, towel, admin_headers):
        body = client.get("/api/inventory/stock?getTotal=true", headers=admin_headers).json()
        assert body["totalCount"] == 2
        assert len(body["data"]) == 1
        entry = body["data"][0]
        assert entry["product_id"] == towel.id
        assert entry["total_quantity"] == 14
        assert {(e["quality"], e["packaging_type"], e["quantity"]) for e in entry["stock_entries"]} == {
            ("Premium", "Box", 10),
            ("Standard", "Open", 4),
        }

    def test_show_zero_stock_includes_empty_products(self, client, stocked, sheet, admin_headers):
        data = client.get("/api/inventory/stock?showZeroStock=true", headers=admin_headers).json()["data"]
        by_id = {entry["product_id"]: entry for entry in data}
        assert by_id[sheet.id]["stock_entries"] == []
        assert by_id[sheet.id]["total_quantity"] == 0

    def test_quality_filter(self, client, stocked, admin_headers):
        data = client.get("/api/inventory/stock?quality=Standard", headers=admin_headers).json()["data"]
        assert data[0]["total_quantity"] == 4

    def test_quantity_on_hand_on_product(self, client, stocked, towel, staff_headers):
        assert client.get(f"/api/products/{towel.id}", headers=staff_headers).json()["quantity_on_hand"] == 14


# ============================================================================
# DISTINCT VALUES
# ============================================================================

class TestDistinct:
    @pytest.fixture
    def logged(self, client, towel, sheet, staff_headers):
        client.post("/api/inventory/logs", headers=staff_headers, json=[
            log_entry(towel.id, 10),
            log_entry(towel.id, 4, quality="Standard", packaging_type="Open"),
        ])

    @pytest.mark.parametrize("path,expected", [
        ("products/color", ["Blue", "White"]),
        ("products/design", ["Floral", "Plain"]),
        ("products/category", ["Linen", "Towels"]),
        ("products/product_name", ["Bath Towel"]),
        ("inventory/quality", ["Premium", "Standard"]),
        ("inventory/packaging_type", ["Box", "Open"]),
        ("inventory/users", ["Fiona Floor"]),
        ("inventory/product_name", ["Bath Towel"]),
    ])
    def test_values(self, client, logged, staff_headers, path, expected):
        response = client.get(f"/api/distinct/{path}", headers=staff_headers)
        assert response.status_code == 200
        assert response.json() == expected

    @pytest.mark.parametrize("path", ["products/sku", "inventory/color", "users/name"])
    def test_invalid_field(self, client, staff_headers, path):
        assert client.get(f"/api/distinct/{path}", headers=staff_headers).status_code == 400
