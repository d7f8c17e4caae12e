import pytest

from conftest import TEST_PASSWORD, auth_headers
from database.models import BeltRank, Profile, School


@pytest.fixture
def admin(factory):
    return factory.admin(email="root@platform.test")


def _new_school(**overrides):
    data = {
        "name": "Iron Crane Dojo",
        "subdomain": "iron-crane",
        "owner_email": "Sensei@Example.com",
        "owner_password": "s3cret-pass",
        "owner_full_name": "Mika Sensei",
    }
    data.update(overrides)
    return data


class TestSchoolCreation:

    def test_creates_trial_school_with_owner_and_belts(self, client, db, admin):
        response = client.post("/api/admin/schools", json=_new_school(), headers=auth_headers(admin))

        assert response.status_code == 201
        body = response.json()
        assert body["subdomain"] == "iron-crane"
        assert body["subscription_status"] == "trial"
        assert body["profiles_count"] == 1

        school = db.query(School).filter(School.id == body["id"]).one()
        assert school.trial_ends_at is not None
        owner = db.query(Profile).filter(Profile.school_id == school.id).one()
        assert owner.role == "owner"
        assert owner.email == "sensei@example.com"
        ranks = db.query(BeltRank).filter(BeltRank.school_id == school.id).order_by(BeltRank.sort_order).all()
        assert ranks[0].name == "White Belt"
        assert [r.sort_order for r in ranks] == list(range(1, len(ranks) + 1))

    def test_standard_plan_starts_active(self, client, admin):
        response = client.post(
            "/api/admin/schools",
            json=_new_school(subscription_plan="standard", billing_day=15),
            headers=auth_headers(admin),
        )
        assert response.json()["subscription_status"] == "active"

    def test_duplicate_subdomain(self, client, admin):
        client.post("/api/admin/schools", json=_new_school(), headers=auth_headers(admin))
        response = client.post(
            "/api/admin/schools",
            json=_new_school(owner_email="other@example.com"),
            headers=auth_headers(admin),
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Subdomain 'iron-crane' is already taken"}

    @pytest.mark.parametrize("field,value", [
        ("subdomain", "admin"),
        ("subdomain", "-bad-"),
        ("billing_day", 31),
        ("subscription_plan", "gold"),
        ("owner_password", "short"),
    ])
    def test_invalid_input(self, client, admin, field, value):
        response = client.post(
            "/api/admin/schools", json=_new_school(**{field: value}), headers=auth_headers(admin)
        )
        assert response.status_code == 400
        assert field in response.json()["fields"]

    def test_owner_is_not_platform_admin(self, client, owner):
        response = client.post("/api/admin/schools", json=_new_school(), headers=auth_headers(owner))
        assert response.status_code == 403

    def test_list_and_get(self, client, admin, school):
        listed = client.get("/api/admin/schools", headers=auth_headers(admin)).json()
        assert listed["total"] == 1
        assert listed["data"][0]["id"] == school.id

        assert client.get(f"/api/admin/schools/{school.id}", headers=auth_headers(admin)).status_code == 200
        assert client.get("/api/admin/schools/9999", headers=auth_headers(admin)).status_code == 404


class TestSubscriptionOverride:

    def test_override_to_founding_partner(self, client, db, admin, factory):
        school = factory.school(subscription_plan="trial", subscription_status="canceled")

        response = client.post(
            f"/api/admin/schools/{school.id}/subscription",
            json={"plan": "founding_partner"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        db.refresh(school)
        assert school.subscription_plan == "founding_partner"
        assert school.subscription_status == "active"
        assert school.trial_ends_at is None

    def test_override_to_trial_resets_window(self, client, db, admin, school):
        client.post(
            f"/api/admin/schools/{school.id}/subscription",
            json={"plan": "trial", "billing_day": 3},
            headers=auth_headers(admin),
        )
        db.refresh(school)
        assert school.subscription_status == "trial"
        assert school.trial_ends_at is not None
        assert school.billing_day == 3

    def test_owner_cannot_override(self, client, owner, school):
        response = client.post(
            f"/api/admin/schools/{school.id}/subscription",
            json={"plan": "founding_partner"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 403


class TestAuth:

    def test_login_and_me(self, client, factory, school):
        parent = factory.profile(school, email="parent@example.com")

        response = client.post(
            "/api/auth/login", json={"email": "Parent@Example.com", "password": TEST_PASSWORD}
        )
        assert response.status_code == 200
        tokens = response.json()["tokens"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
        assert me.status_code == 200
        assert me.json()["id"] == parent.id
        assert me.json()["school_subdomain"] == school.subdomain
        assert "view_events" in me.json()["permissions"]

        refreshed = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert refreshed.status_code == 200

    def test_wrong_password(self, client, factory, school):
        factory.profile(school, email="parent@example.com")
        response = client.post(
            "/api/auth/login", json={"email": "parent@example.com", "password": "wrong-password"}
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid email or password"}

    def test_disabled_account(self, client, factory, school):
        parent = factory.profile(school, is_active=False)
        assert client.get("/api/auth/me", headers=auth_headers(parent)).status_code == 403

    def test_missing_and_garbage_tokens(self, client):
        assert client.get("/api/auth/me").status_code == 401
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or expired token"}

    def test_refresh_token_is_not_an_access_token(self, client, factory, school):
        factory.profile(school, email="parent@example.com")
        tokens = client.post(
            "/api/auth/login", json={"email": "parent@example.com", "password": TEST_PASSWORD}
        ).json()["tokens"]
        response = client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"}
        )
        assert response.status_code == 401


class TestPublicSchoolInfo:

    def test_info_by_subdomain(self, client, school):
        response = client.get(f"/api/schools/{school.subdomain}/info")
        assert response.status_code == 200
        body = response.json()
        assert body["name"] == school.name
        assert body["accepting_payments"] is True
        assert "stripe_customer_id" not in body

    def test_unknown_subdomain(self, client):
        response = client.get("/api/schools/nowhere/info")
        assert response.status_code == 404
        assert response.json() == {"error": "School not found"}
