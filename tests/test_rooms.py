"""
Room catalog: overlap predicate, availability query, direct status edits,
room types and soft deletes.
"""
from datetime import date

import pytest

from hotelpms.services.rooms import billable_nights, ranges_overlap, room_status_for, stays_overlap


class TestOverlap:

    @pytest.mark.parametrize("a, b, c, d, expected", [
        (1, 3, 2, 4, True),
        (1, 3, 3, 5, False),   # back-to-back
        (3, 5, 1, 3, False),
        (1, 10, 4, 5, True),   # containment
        (4, 5, 1, 10, True),
    ])
    def test_half_open_ranges(self, a, b, c, d, expected):
        assert ranges_overlap(a, b, c, d) is expected

    def test_same_day_stay_occupies_its_day(self):
        day = date(2026, 11, 1)
        assert stays_overlap(day, day, day, date(2026, 11, 2))
        assert not stays_overlap(day, day, date(2026, 11, 2), date(2026, 11, 3))

    def test_same_day_stay_is_one_night(self):
        assert billable_nights(date(2026, 11, 1), date(2026, 11, 1)) == 1
        assert billable_nights(date(2026, 11, 1), date(2026, 11, 4)) == 3

    @pytest.mark.parametrize("status, room_status", [
        ("checked-in", "occupied"),
        ("checked-out", "available"),
        ("cancelled", "available"),
        ("confirmed", "reserved"),
        ("pending", "reserved"),
        ("no-show", "reserved"),
    ])
    def test_room_status_mapping(self, status, room_status):
        assert room_status_for(status) == room_status


class TestAvailability:

    def test_booked_room_is_excluded_only_when_dates_overlap(self, desk, seed, make_reservation):
        booked = seed.room_ids["101"]
        res = desk.post("/api/reservations", json=make_reservation(seed.branch_id, [booked]))
        assert res.status_code == 201

        params = {"branchId": seed.branch_id, "checkIn": "2026-11-02", "checkOut": "2026-11-05"}
        ids = [r["id"] for r in desk.get("/api/rooms/availability", params=params).json()]
        assert booked not in ids
        assert len(ids) == 3

        # Checking in on the other guest's checkout day does not clash
        params = {"branchId": seed.branch_id, "checkIn": "2026-11-03", "checkOut": "2026-11-04"}
        ids = [r["id"] for r in desk.get("/api/rooms/availability", params=params).json()]
        assert booked in ids

    def test_cancelled_reservation_frees_the_room(self, desk, seed, make_reservation):
        booked = seed.room_ids["102"]
        reservation_id = desk.post("/api/reservations", json=make_reservation(seed.branch_id, [booked])).json()["id"]
        assert desk.delete(f"/api/reservations/{reservation_id}").status_code == 204

        params = {"branchId": seed.branch_id, "checkIn": "2026-11-01", "checkOut": "2026-11-03"}
        ids = [r["id"] for r in desk.get("/api/rooms/availability", params=params).json()]
        assert booked in ids

    def test_missing_params(self, desk, seed):
        res = desk.get("/api/rooms/availability", params={"branchId": seed.branch_id})
        assert res.status_code == 400
        assert "required" in res.json()["message"]

    def test_other_branch_is_forbidden(self, client_for, seed):
        lake = client_for(seed.user_ids["lake_desk"])
        params = {"branchId": seed.branch_id, "checkIn": "2026-11-01", "checkOut": "2026-11-03"}
        assert lake.get("/api/rooms/availability", params=params).status_code == 403

    def test_checkout_before_checkin(self, desk, seed):
        params = {"branchId": seed.branch_id, "checkIn": "2026-11-05", "checkOut": "2026-11-01"}
        assert desk.get("/api/rooms/availability", params=params).status_code == 400


class TestRoomEndpoints:

    def test_list_is_scoped_to_own_branch(self, desk, admin, seed):
        numbers = sorted(r["number"] for r in desk.get("/api/rooms").json())
        assert numbers == ["101", "102", "103", "104"]
        assert len(admin.get("/api/rooms").json()) == 5
        assert len(admin.get("/api/rooms", params={"branchId": seed.lake_branch_id}).json()) == 1

    def test_maintenance_edit_does_not_touch_reservations(self, desk, seed, make_reservation, broadcasts):
        room_id = seed.room_ids["103"]
        reservation = desk.post("/api/reservations", json=make_reservation(seed.branch_id, [room_id])).json()

        res = desk.patch(f"/api/rooms/{room_id}", json={"status": "maintenance"})

        assert res.status_code == 200
        assert res.json()["status"] == "maintenance"
        assert desk.get(f"/api/reservations/{reservation['id']}").json()["status"] == "confirmed"
        assert ("rooms", "updated", {"id": room_id, "status": "maintenance"}) in broadcasts

    def test_status_filter(self, desk, seed):
        desk.patch(f"/api/rooms/{seed.room_ids['104']}", json={"status": "housekeeping"})
        res = desk.get("/api/rooms", params={"status": "housekeeping"})
        assert [r["number"] for r in res.json()] == ["104"]

    def test_front_desk_cannot_delete_rooms(self, desk, client_for, seed):
        room_id = seed.room_ids["104"]
        assert desk.delete(f"/api/rooms/{room_id}").status_code == 403

        manager = client_for(seed.user_ids["branch_admin"])
        assert manager.delete(f"/api/rooms/{room_id}").status_code == 204
        assert manager.get(f"/api/rooms/{room_id}").json()["isActive"] is False

    def test_create_room_rejects_foreign_room_type(self, admin, seed):
        own = admin.post("/api/room-types", json={"name": "Lake suite", "branchId": seed.lake_branch_id}).json()
        res = admin.post("/api/rooms", json={"branchId": seed.branch_id, "roomTypeId": own["id"], "number": "105"})
        assert res.status_code == 400

    def test_room_numbers_are_unique_per_branch(self, admin, seed):
        room = {"branchId": seed.branch_id, "roomTypeId": seed.room_type_id, "number": "101"}
        res = admin.post("/api/rooms", json=room)
        assert res.status_code == 400
        assert res.json() == {"message": "Room number already exists in this branch"}

        res = admin.post("/api/rooms", json={**room, "branchId": seed.lake_branch_id})
        assert res.status_code == 201

        res = admin.put(f"/api/rooms/{seed.room_ids['102']}", json={"number": "101"})
        assert res.status_code == 400
        assert admin.get(f"/api/rooms/{seed.room_ids['102']}").json()["number"] == "102"


class TestRoomTypes:

    def test_branch_users_see_own_and_global_types(self, admin, desk, seed):
        admin.post("/api/room-types", json={"name": "Lake suite", "branchId": seed.lake_branch_id})
        admin.post("/api/room-types", json={"name": "Garden", "branchId": seed.branch_id})

        names = sorted(t["name"] for t in desk.get("/api/room-types").json())
        assert names == ["Deluxe", "Garden"]
        assert len(admin.get("/api/room-types").json()) == 3

    def test_only_superadmin_manages_types(self, desk, admin, seed):
        assert desk.post("/api/room-types", json={"name": "Nope"}).status_code == 403
        assert admin.delete(f"/api/room-types/{seed.room_type_id}").status_code == 204
        assert admin.get(f"/api/room-types/{seed.room_type_id}").json()["isActive"] is False
