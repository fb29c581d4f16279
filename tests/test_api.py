"""
HTTP surface end to end: login cookie, resources, grants, tenants, users,
invitations.
"""
from citygate.core.config import settings
from conftest import PASSWORD


def login(client, user):
    resp = client.post("/api/v1/auth/login", json={"email": user.email, "password": PASSWORD})
    assert resp.status_code == 200, resp.text
    return resp


class TestAuthEndpoints:
    def test_login_sets_readable_cookie(self, world, client):
        resp = login(client, world.users["u3"])
        cookie = resp.headers["set-cookie"]
        assert cookie.startswith(f"{settings.SESSION_COOKIE_NAME}=")
        assert "httponly" not in cookie.lower()
        assert "samesite=lax" in cookie.lower()
        assert resp.json()["user"]["id"] == world.users["u3"].id

        me = client.get("/api/v1/auth/me")
        assert me.status_code == 200
        assert [g["tenant_id"] for g in me.json()["grants"]] == [world.tenants["utrecht"].id]

    def test_bad_credentials_do_not_say_why(self, world, client):
        wrong = client.post("/api/v1/auth/login", json={"email": "u3@citygate.org", "password": "nope"})
        unknown = client.post("/api/v1/auth/login", json={"email": "nobody@citygate.org", "password": "nope"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    def test_logout_clears_cookie(self, world, client):
        login(client, world.users["u3"])
        resp = client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert f'{settings.SESSION_COOKIE_NAME}=""' in resp.headers["set-cookie"]
        assert client.get("/api/v1/auth/session").json() == {
            "authenticated": False, "user_id": None, "role": None, "expires_at": None,
        }

    def test_session_check(self, world, client):
        login(client, world.users["u4"])
        body = client.get("/api/v1/auth/session").json()
        assert body["authenticated"] is True
        assert body["role"] == "operator"


class TestResourceEndpoints:
    def test_operator_crud_in_own_tenant(self, world, client):
        login(client, world.users["u3"])
        base = "/api/v1/tenants/utrecht/resources/districts"
        created = client.post(base, json={"slug": "oost", "name": "Oost"})
        assert created.status_code == 201
        row_id = created.json()["id"]

        assert [r["id"] for r in client.get(base).json()["items"]] == [row_id]
        patched = client.patch(f"{base}/{row_id}", json={"name": "Utrecht Oost"})
        assert patched.json()["name"] == "Utrecht Oost"
        assert client.delete(f"{base}/{row_id}").status_code == 204
        assert client.get(f"{base}/{row_id}").status_code == 404

    def test_validation_and_unknown_kind(self, world, client):
        login(client, world.users["u3"])
        base = "/api/v1/tenants/utrecht/resources"
        bad = client.post(f"{base}/districts", json={"slug": "Not A Slug", "name": "X"})
        assert bad.status_code == 422
        assert bad.json()["detail"]["code"] == "validation_error"
        sneaky = client.post(f"{base}/districts", json={"slug": "x", "name": "X", "tenant_id": "other"})
        assert sneaky.status_code == 422
        assert client.get(f"{base}/invoices").status_code == 404

    def test_explicit_null_only_for_nullable_columns(self, world, client):
        login(client, world.users["u3"])
        base = "/api/v1/tenants/utrecht/resources"
        district = client.post(f"{base}/districts", json={"slug": "noord", "name": "Noord"}).json()
        resp = client.patch(f"{base}/districts/{district['id']}", json={"name": None})
        assert resp.status_code == 422
        assert resp.json()["detail"]["code"] == "validation_error"
        assert client.get(f"{base}/districts/{district['id']}").json()["name"] == "Noord"

        language = client.post(f"{base}/languages", json={"code": "fy", "name": "Frisian", "endonym": "Frysk"}).json()
        resp = client.patch(f"{base}/languages/{language['id']}", json={"endonym": None})
        assert resp.status_code == 200
        assert resp.json()["endonym"] is None

    def test_tenant_locales_admin_only(self, world, client):
        login(client, world.users["u3"])
        resp = client.post("/api/v1/tenants/utrecht/resources/tenant_locales", json={"locale_code": "nl"})
        assert resp.status_code == 403
        assert resp.json()["detail"]["message"] == "Not permitted"

    def test_duplicate_is_conflict(self, world, client):
        login(client, world.users["s1"])
        base = "/api/v1/tenants/rotterdam/resources/languages"
        assert client.post(base, json={"code": "nl", "name": "Dutch"}).status_code == 201
        assert client.post(base, json={"code": "nl", "name": "Dutch"}).status_code == 409


class TestGrantEndpoints:
    def test_admin_manages_grants(self, world, client):
        login(client, world.users["u1"])
        base = "/api/v1/tenants/rotterdam/grants"
        u2 = world.users["u2"].id
        assert client.post(base, json={"user_id": u2, "role": "operator"}).status_code == 201
        assert client.post(base, json={"user_id": u2, "role": "admin"}).status_code == 409
        assert client.patch(f"{base}/{u2}", json={"role": "admin"}).json()["role"] == "admin"
        assert client.delete(f"{base}/{u2}").json() == {"ok": True, "removed": True}
        assert client.delete(f"{base}/{u2}").json() == {"ok": True, "removed": False}

    def test_superuser_role_never_granted(self, world, client):
        login(client, world.users["u1"])
        resp = client.post(
            "/api/v1/tenants/rotterdam/grants", json={"user_id": world.users["u2"].id, "role": "superuser"}
        )
        assert resp.status_code == 422

    def test_scenario_d_operator_cannot_grant(self, world, client):
        login(client, world.users["u3"])
        resp = client.post(
            "/api/v1/tenants/utrecht/grants", json={"user_id": world.users["u2"].id, "role": "operator"}
        )
        assert resp.status_code == 403
        assert [g["user_id"] for g in client.get("/api/v1/tenants/utrecht/grants").json()["items"]] == [
            world.users["u3"].id
        ]


class TestTenantAndUserEndpoints:
    def test_tenant_listing_and_creation(self, world, client):
        login(client, world.users["u3"])
        assert [t["slug"] for t in client.get("/api/v1/tenants").json()["items"]] == ["utrecht"]
        assert client.post("/api/v1/tenants", json={"slug": "delft", "name": "Delft"}).status_code == 403

        client.cookies.clear()
        login(client, world.users["s1"])
        created = client.post("/api/v1/tenants", json={"slug": "delft", "name": "Delft"})
        assert created.status_code == 201
        assert created.json()["status"] == "draft"
        assert client.patch("/api/v1/tenants/delft/status", json={"status": "active"}).json()["status"] == "active"
        assert client.delete("/api/v1/tenants/delft").status_code == 204
        assert client.get("/api/v1/tenants/delft").status_code == 403

    def test_deactivation_ends_sessions(self, world, client):
        login(client, world.users["s1"])
        u3 = world.users["u3"].id
        assert client.post(f"/api/v1/users/{u3}/deactivate").json()["user"]["is_active"] is False

        client.cookies.clear()
        resp = client.post("/api/v1/auth/login", json={"email": "u3@citygate.org", "password": PASSWORD})
        assert resp.status_code == 401

    def test_profile_and_role(self, world, client):
        login(client, world.users["u2"])
        assert client.patch("/api/v1/users/me", json={"full_name": "Two"}).json()["user"]["full_name"] == "Two"
        assert client.get("/api/v1/users/me/grants").json()["items"] == []
        assert client.patch(f"/api/v1/users/{world.users['u2'].id}/role", json={"role": "superuser"}).status_code == 403


class TestInvitationEndpoints:
    def test_invite_accept_login(self, world, client):
        login(client, world.users["u1"])
        created = client.post("/api/v1/invitations", json={
            "email": "new@citygate.org", "role": "operator", "tenant_ids": [world.tenants["rotterdam"].id],
        })
        assert created.status_code == 201
        token = created.json()["token"]

        client.cookies.clear()
        accepted = client.post("/api/v1/invitations/accept", json={"token": token, "password": "new-password-1"})
        assert accepted.status_code == 200
        resp = client.post("/api/v1/auth/login", json={"email": "new@citygate.org", "password": "new-password-1"})
        assert resp.status_code == 200
        assert client.get("/operator/rotterdam").status_code == 200
        assert client.get("/operator/utrecht").status_code == 303

    def test_listing_requires_session(self, world, client):
        assert client.get("/api/v1/invitations").status_code == 401
