"""
Admin API: user management.

Test blocks:
  1. Authorization
  2. User CRUD
  3. Soft delete / restore
"""

from actionhub.models import db as _db
from actionhub.models.user import User


class TestAuthorization:

    def test_requires_token(self, client):
        assert client.get("/api/v1/admin/users").status_code == 401

    def test_requires_admin_role(self, client, member, auth_headers):
        res = client.get("/api/v1/admin/users", headers=auth_headers(member))
        assert res.status_code == 403
        assert res.get_json()["details"] == {"required_roles": ["Admin"]}


class TestUserCRUD:

    def test_list_users(self, client, admin, member, auth_headers):
        res = client.get("/api/v1/admin/users", headers=auth_headers(admin))
        assert res.status_code == 200
        data = res.get_json()
        assert data["total"] == 2
        assert {u["email"] for u in data["items"]} == {"admin@acme.com", "luis@acme.com"}

    def test_pagination(self, client, admin, member, auth_headers):
        data = client.get("/api/v1/admin/users?limit=1&offset=1", headers=auth_headers(admin)).get_json()
        assert data["total"] == 2
        assert len(data["items"]) == 1

    def test_create_user(self, client, admin, auth_headers):
        res = client.post("/api/v1/admin/users", json={
            "name": "Carmen", "email": "Carmen@Acme.com", "role": "Director",
        }, headers=auth_headers(admin))
        assert res.status_code == 201
        data = res.get_json()
        assert data["email"] == "carmen@acme.com"
        assert data["role"] == "Director"
        assert data["group_ids"] == []

    def test_create_duplicate_email_conflicts(self, client, admin, member, auth_headers):
        res = client.post("/api/v1/admin/users", json={"name": "Luis 2", "email": "LUIS@acme.com"},
                          headers=auth_headers(admin))
        assert res.status_code == 409

    def test_create_validation(self, client, admin, auth_headers):
        headers = auth_headers(admin)
        assert client.post("/api/v1/admin/users", json={"name": "X", "email": "not-an-email"},
                           headers=headers).status_code == 422
        assert client.post("/api/v1/admin/users", json={"name": "X", "email": "x@acme.com", "role": "Owner"},
                           headers=headers).status_code == 422
        assert client.post("/api/v1/admin/users", json={"name": "X", "email": "x@acme.com", "avatar": "file:///a"},
                           headers=headers).status_code == 422

    def test_update_only_supplied_fields(self, client, admin, member, auth_headers):
        res = client.put(f"/api/v1/admin/users/{member.id}", json={"role": "Committee"},
                         headers=auth_headers(admin))
        assert res.status_code == 200
        data = res.get_json()
        assert data["role"] == "Committee"
        assert data["name"] == "Luis Gómez"
        assert data["email"] == "luis@acme.com"

    def test_get_unknown_user(self, client, admin, auth_headers):
        assert client.get("/api/v1/admin/users/nope", headers=auth_headers(admin)).status_code == 404


class TestSoftDelete:

    def test_delete_and_restore(self, client, admin, member, auth_headers):
        headers = auth_headers(admin)
        res = client.delete(f"/api/v1/admin/users/{member.id}", headers=headers)
        assert res.status_code == 200
        assert res.get_json()["deleted_at"] is not None

        listed = client.get("/api/v1/admin/users", headers=headers).get_json()
        assert member.id not in [u["id"] for u in listed["items"]]
        with_deleted = client.get("/api/v1/admin/users?include_deleted=true", headers=headers).get_json()
        assert member.id in [u["id"] for u in with_deleted["items"]]

        res = client.post(f"/api/v1/admin/users/{member.id}/restore", headers=headers)
        assert res.status_code == 200
        assert res.get_json()["deleted_at"] is None
        _db.session.expire_all()
        assert _db.session.get(User, member.id).is_deleted is False

    def test_cannot_delete_self(self, client, admin, auth_headers):
        res = client.delete(f"/api/v1/admin/users/{admin.id}", headers=auth_headers(admin))
        assert res.status_code == 422

    def test_email_freed_by_delete_blocks_restore(self, client, admin, member, auth_headers):
        headers = auth_headers(admin)
        client.delete(f"/api/v1/admin/users/{member.id}", headers=headers)
        res = client.post("/api/v1/admin/users", json={"name": "New Luis", "email": "luis@acme.com"}, headers=headers)
        assert res.status_code == 201
        assert client.post(f"/api/v1/admin/users/{member.id}/restore", headers=headers).status_code == 409
