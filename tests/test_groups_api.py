"""
Groups API: import, listing, removal and Workspace error surfacing.
"""

from unittest.mock import patch

from actionhub.core.exceptions import ConfigurationError, WorkspaceAuthorizationError
from actionhub.models import db as _db
from actionhub.models.user import UserGroup
from actionhub.services import group_service, group_sync_service

from conftest import FakeWorkspaceGateway


def _workspace():
    return FakeWorkspaceGateway(
        groups={
            "quality@acme.com": ["luis@acme.com"],
            "safety@acme.com": [],
            "board@acme.com": [],
        },
        names={"quality@acme.com": "Quality", "safety@acme.com": "Safety", "board@acme.com": "Board"},
    )


class TestWorkspaceGroups:

    def test_lists_groups_not_yet_imported(self, client, admin, auth_headers):
        _db.session.add(UserGroup(id="quality@acme.com", name="Quality", user_ids=[]))
        _db.session.commit()
        with patch.object(group_service, "get_workspace_gateway", return_value=_workspace()):
            res = client.get("/api/v1/groups/workspace", headers=auth_headers(admin))
        assert res.status_code == 200
        ids = [g["id"] for g in res.get_json()["items"]]
        assert ids == ["board@acme.com", "safety@acme.com"]

    def test_requires_admin(self, client, member, auth_headers):
        res = client.get("/api/v1/groups/workspace", headers=auth_headers(member))
        assert res.status_code == 403

    def test_delegation_error_reaches_admin(self, client, admin, auth_headers):
        with patch.object(
            group_service, "get_workspace_gateway",
            side_effect=WorkspaceAuthorizationError("Permission denied by Google Workspace", status_code=403),
        ):
            res = client.get("/api/v1/groups/workspace", headers=auth_headers(admin))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_WORKSPACE_UNAUTHORIZED"

    def test_missing_configuration_is_503(self, client, admin, auth_headers):
        with patch.object(
            group_service, "get_workspace_gateway",
            side_effect=ConfigurationError("GSUITE_ADMIN_EMAIL is not configured"),
        ):
            res = client.get("/api/v1/groups/workspace", headers=auth_headers(admin))
        assert res.status_code == 503
        assert res.get_json()["code"] == "ERR_CONFIGURATION"


class TestImport:

    def test_import_selected_groups(self, client, admin, auth_headers):
        res = client.post(
            "/api/v1/groups/import",
            json={"groups": [{"id": "Quality@acme.com", "name": "Quality"}, {"id": "safety@acme.com", "name": "Safety"}]},
            headers=auth_headers(admin),
        )
        assert res.status_code == 201
        assert [g["id"] for g in res.get_json()["items"]] == ["quality@acme.com", "safety@acme.com"]
        assert UserGroup.query.count() == 2

    def test_reimport_refreshes_in_place(self, client, admin, auth_headers):
        headers = auth_headers(admin)
        client.post("/api/v1/groups/import", json={"groups": [{"id": "quality@acme.com", "name": "Q"}]}, headers=headers)
        client.post("/api/v1/groups/import", json={"groups": [{"id": "quality@acme.com", "name": "Quality"}]}, headers=headers)
        _db.session.expire_all()
        assert UserGroup.query.count() == 1
        assert _db.session.get(UserGroup, "quality@acme.com").name == "Quality"

    def test_empty_selection_rejected(self, client, admin, auth_headers):
        res = client.post("/api/v1/groups/import", json={"groups": []}, headers=auth_headers(admin))
        assert res.status_code == 422

    def test_groups_field_required(self, client, admin, auth_headers):
        res = client.post("/api/v1/groups/import", json={}, headers=auth_headers(admin))
        assert res.status_code == 400


class TestListingAndDelete:

    def test_list_and_mine(self, client, member, auth_headers):
        _db.session.add_all([
            UserGroup(id="quality@acme.com", name="Quality", user_ids=[member.id]),
            UserGroup(id="safety@acme.com", name="Safety", user_ids=[]),
        ])
        member.group_ids = ["quality@acme.com"]
        _db.session.commit()

        headers = auth_headers(member)
        all_groups = client.get("/api/v1/groups", headers=headers).get_json()["items"]
        assert [g["id"] for g in all_groups] == ["quality@acme.com", "safety@acme.com"]
        mine = client.get("/api/v1/groups/mine", headers=headers).get_json()["items"]
        assert [g["id"] for g in mine] == ["quality@acme.com"]

    def test_manual_resync_of_own_groups(self, client, member, auth_headers):
        _db.session.add(UserGroup(id="quality@acme.com", name="Quality", user_ids=[]))
        _db.session.commit()
        with patch.object(group_sync_service, "get_workspace_gateway", return_value=_workspace()):
            res = client.post("/api/v1/groups/mine/sync", headers=auth_headers(member))
        assert res.status_code == 200
        assert res.get_json()["group_ids"] == ["quality@acme.com"]

    def test_delete_group(self, client, admin, auth_headers):
        _db.session.add(UserGroup(id="quality@acme.com", name="Quality", user_ids=[]))
        _db.session.commit()
        res = client.delete("/api/v1/groups/Quality@acme.com", headers=auth_headers(admin))
        assert res.status_code == 200
        assert res.get_json()["deleted"] == "quality@acme.com"
        assert UserGroup.query.count() == 0

    def test_delete_unknown_group(self, client, admin, auth_headers):
        res = client.delete("/api/v1/groups/ghost@acme.com", headers=auth_headers(admin))
        assert res.status_code == 404
