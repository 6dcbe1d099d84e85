"""
Tax engine: per-tax rounding, active/type filtering, snapshot re-pricing,
and the tax management endpoints.
"""
from decimal import Decimal

from hotelpms.models import Tax
from hotelpms.services.taxes import apply_rates, compute_taxes, recompute_from_snapshot


class TestApplyRates:

    def test_no_taxes_yields_zero(self):
        result = apply_rates(Decimal("250.00"), [])
        assert result.total_tax == Decimal("0.00")
        assert result.breakdown == []

    def test_single_rate(self):
        result = apply_rates(Decimal("200.00"), [(1, "VAT", Decimal("10"))])
        assert result.total_tax == Decimal("20.00")
        assert result.breakdown == [{"taxId": 1, "name": "VAT", "rate": "10.00", "amount": "20.00"}]

    def test_each_amount_rounds_half_up_to_cent(self):
        # 100.05 * 12.5% = 12.50625
        result = apply_rates(Decimal("100.05"), [(1, "City", Decimal("12.5"))])
        assert result.breakdown[0]["amount"] == "12.51"
        assert result.total_tax == Decimal("12.51")

    def test_total_is_sum_of_rounded_amounts(self):
        # 0.05 * 10% = 0.005 -> 0.01 each, so the total is 0.02 rather than round(0.01)
        result = apply_rates(Decimal("0.05"), [(1, "A", Decimal("10")), (2, "B", Decimal("10"))])
        assert result.total_tax == Decimal("0.02")

    def test_breakdown_keeps_input_order(self):
        result = apply_rates(Decimal("100"), [(2, "Zeta", Decimal("1")), (1, "Alpha", Decimal("2"))])
        assert [b["taxId"] for b in result.breakdown] == [2, 1]


class TestComputeTaxes:

    def test_only_active_taxes_of_the_requested_type(self, db):
        db.add_all([
            Tax(tax_name="VAT", rate=Decimal("10.00"), application_type="reservation"),
            Tax(tax_name="Tourism", rate=Decimal("2.50"), application_type="reservation"),
            Tax(tax_name="Old levy", rate=Decimal("50.00"), application_type="reservation", is_active=False),
            Tax(tax_name="Service charge", rate=Decimal("5.00"), application_type="order"),
        ])
        db.commit()

        result = compute_taxes(db, Decimal("200.00"), "reservation")

        assert result.total_tax == Decimal("25.00")
        assert [b["name"] for b in result.breakdown] == ["Tourism", "VAT"]

    def test_no_matching_taxes_is_not_an_error(self, db):
        result = compute_taxes(db, Decimal("99.99"), "reservation")
        assert result.total_tax == Decimal("0.00")
        assert result.breakdown == []

    def test_snapshot_ignores_later_rate_changes(self):
        snapshot = [{"taxId": 7, "name": "VAT", "rate": "10.00", "amount": "20.00"}]
        result = recompute_from_snapshot(Decimal("300.00"), snapshot)
        assert result.total_tax == Decimal("30.00")
        assert result.breakdown[0]["rate"] == "10.00"


class TestTaxEndpoints:

    def test_reservation_taxes_visible_to_front_desk(self, desk):
        res = desk.get("/api/taxes/reservation")
        assert res.status_code == 200
        assert [t["taxName"] for t in res.json()] == ["VAT"]
        assert res.json()[0]["rate"] == "10.00"

    def test_full_list_requires_admin_tier(self, desk, admin):
        assert desk.get("/api/taxes").status_code == 403
        assert admin.get("/api/taxes").status_code == 200

    def test_duplicate_name_is_rejected(self, admin):
        res = admin.post("/api/taxes", json={"taxName": "VAT", "rate": "12"})
        assert res.status_code == 400
        assert res.json()["message"] == "Tax name already exists"

    def test_create_update_delete(self, admin):
        res = admin.post("/api/taxes", json={"taxName": "City tax", "rate": "3.5", "applicationType": "order"})
        assert res.status_code == 201
        tax_id = res.json()["id"]

        res = admin.put(f"/api/taxes/{tax_id}", json={"isActive": False})
        assert res.status_code == 200
        assert res.json()["isActive"] is False

        assert admin.delete(f"/api/taxes/{tax_id}").status_code == 204
        assert admin.get(f"/api/taxes/{tax_id}").status_code == 404
