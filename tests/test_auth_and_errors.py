"""
Session auth, user management and the JSON error body shape.
"""
from hotelpms.config import settings
from hotelpms.models import User
from hotelpms.security import hash_password


class TestAuth:

    def test_login_sets_session_cookie(self, client_for, db, seed):
        db.add(User(email="owner@example.com", hashed_password=hash_password("correct horse"), role="branch-admin",
                    branch_id=seed.branch_id))
        db.commit()
        client = client_for()

        res = client.post("/api/auth/login", json={"email": "Owner@example.com", "password": "correct horse"})

        assert res.status_code == 200
        assert res.json()["role"] == "branch-admin"
        assert settings.SESSION_COOKIE_NAME in res.cookies
        assert client.get("/api/auth/user").json()["email"] == "owner@example.com"

    def test_bad_password(self, client_for, db, seed):
        db.add(User(email="owner@example.com", hashed_password=hash_password("correct horse"), role="front-desk"))
        db.commit()
        res = client_for().post("/api/auth/login", json={"email": "owner@example.com", "password": "wrong"})
        assert res.status_code == 401
        assert res.json() == {"message": "Invalid email or password"}

    def test_logout_clears_cookie(self, desk):
        res = desk.post("/api/auth/logout")
        assert res.status_code == 200
        cookie = res.headers["set-cookie"].lower()
        assert cookie.startswith(settings.SESSION_COOKIE_NAME)
        assert "max-age=0" in cookie

    def test_tampered_cookie(self, client_for, seed):
        client = client_for()
        client.cookies.set(settings.SESSION_COOKIE_NAME, "forged.value")
        assert client.get("/api/auth/user").status_code == 401

    def test_deactivated_user_loses_access(self, admin, desk, seed):
        assert admin.delete(f"/api/users/{seed.user_ids['front_desk']}").status_code == 204
        assert desk.get("/api/reservations").status_code == 401


class TestUsers:

    def test_superadmin_only(self, client_for, seed):
        manager = client_for(seed.user_ids["branch_admin"])
        assert manager.get("/api/users").status_code == 403

    def test_create_custom_user_with_permission_map(self, admin, client_for, seed):
        res = admin.post("/api/users", json={
            "email": "night@example.com",
            "password": "night-shift-1",
            "role": "custom",
            "branchId": seed.branch_id,
            "permissions": {"guests": {"read": True}},
        })
        assert res.status_code == 201
        user = res.json()
        assert user["permissions"] == {"guests": {"read": True}}

        night = client_for(user["id"])
        assert night.get("/api/guests").status_code == 200
        assert night.get("/api/reservations").status_code == 403

    def test_duplicate_email(self, admin, seed):
        res = admin.post("/api/users", json={"email": "desk@example.com", "password": "whatever-123"})
        assert res.status_code == 400
        assert res.json()["message"] == "Email already registered"

    def test_cannot_deactivate_self(self, admin, seed):
        assert admin.delete(f"/api/users/{seed.user_ids['superadmin']}").status_code == 400

    def test_update_role(self, admin, seed):
        res = admin.put(f"/api/users/{seed.user_ids['front_desk']}", json={"role": "branch-admin"})
        assert res.status_code == 200
        assert res.json()["role"] == "branch-admin"


class TestErrorBodies:

    def test_validation_error_shape(self, desk, seed):
        res = desk.post("/api/reservations", json={"guest": {"firstName": "Ada"}, "reservation": {}, "rooms": []})
        assert res.status_code == 400
        body = res.json()
        assert body["message"].startswith("rooms")
        assert body["errors"][0]["field"] == "rooms"

    def test_not_found_shape(self, desk, seed):
        res = desk.get("/api/reservations/nope")
        assert res.status_code == 404
        assert res.json() == {"message": "Reservation not found"}

    def test_permission_shape(self, desk, seed):
        res = desk.get("/api/users")
        assert res.status_code == 403
        assert res.json() == {"message": "Insufficient permissions"}

    def test_healthz(self, client_for):
        assert client_for().get("/healthz").json() == {"status": "ok"}
