"""
Improvement actions: creation, visibility, lifecycle, comments, attachments.

Test blocks:
  1. Creation (code, access lists, creation roles, classification)
  2. Visibility (readers / authors / outsiders / no rule)
  3. Lifecycle transitions
  4. Access refresh on rule and master-data changes, Pattern roles
  5. Comments & attachments
  6. Reports
"""

from datetime import datetime, timezone

import pytest

from actionhub.models import db as _db
from actionhub.models.action import ImprovementAction
from actionhub.services import master_data_service as mds
from actionhub.services import permission_matrix_service as pms


@pytest.fixture
def workflow():
    """Roles, one governed action type, one ungoverned type, and rules for every status."""
    originator = mds.create_item("responsibilityRoles", {"name": "Originator", "type": "Fixed", "email": "luis@acme.com"})
    quality = mds.create_item("responsibilityRoles", {"name": "Quality", "type": "Fixed", "email": "quality@acme.com"})
    analyst = mds.create_item("responsibilityRoles", {"name": "Analyst", "type": "Fixed", "email": "analyst@acme.com"})
    area = mds.create_item(
        "responsibilityRoles",
        {"name": "Area lead", "type": "Pattern", "email_pattern": "lead-{{category.name}}@acme.com"},
    )
    governed = mds.create_item("actionTypes", {"name": "Correctiva"})
    ungoverned = mds.create_item("actionTypes", {"name": "Mejora"})

    pms.upsert_rule(governed.id, "draft", [quality.id], [originator.id])
    pms.upsert_rule(governed.id, "pending_analysis", [originator.id], [quality.id])
    pms.upsert_rule(governed.id, "in_analysis", [quality.id], [analyst.id])
    for status in ("pending_verification", "in_verification", "pending_closure", "closed"):
        pms.upsert_rule(governed.id, status, [originator.id, analyst.id], [quality.id])

    category = mds.create_item("categories", {"name": "Calidad"})
    return {
        "originator": originator, "quality": quality, "analyst": analyst, "area": area,
        "type": governed, "ungoverned": ungoverned, "category": category,
    }


@pytest.fixture
def people(make_user, member, admin):
    return {
        "creator": member,
        "admin": admin,
        "quality": make_user(name="Quality", email="quality@acme.com"),
        "analyst": make_user(name="Analyst", email="analyst@acme.com"),
        "outsider": make_user(name="Pepe", email="pepe@acme.com"),
    }


def _create(client, auth_headers, user, **fields):
    body = {"title": "Fuga en línea 3", **fields}
    return client.post("/api/v1/actions", json=body, headers=auth_headers(user))


def _transition(client, auth_headers, user, action_id, name, payload=None):
    return client.post(
        f"/api/v1/actions/{action_id}/transitions/{name}", json=payload or {}, headers=auth_headers(user),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Block 1: Creation
# ═══════════════════════════════════════════════════════════════════════════════

class TestCreate:

    def test_create_draft_with_code_and_access(self, client, workflow, people, auth_headers):
        res = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id,
                      category_id=workflow["category"].id, analysis_due_date="2026-03-01")
        assert res.status_code == 201
        data = res.get_json()
        year = datetime.now(timezone.utc).year
        assert data["code"] == f"AM-{year}-001"
        assert data["status"] == "draft"
        assert data["status_label"] == "Borrador"
        assert data["analysis_due_date"] == "2026-03-01"
        assert data["author_emails"] == ["luis@acme.com"]
        assert data["reader_emails"] == ["luis@acme.com", "quality@acme.com"]

    def test_codes_are_sequential(self, client, workflow, people, auth_headers):
        year = datetime.now(timezone.utc).year
        _create(client, auth_headers, people["creator"], type_id=workflow["type"].id)
        second = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        assert second["code"] == f"AM-{year}-002"

    def test_title_and_type_required(self, client, workflow, people, auth_headers):
        assert _create(client, auth_headers, people["creator"], title="").status_code == 422
        assert _create(client, auth_headers, people["creator"]).status_code == 422

    def test_creation_roles_enforced(self, client, workflow, people, auth_headers):
        mds.update_item("actionTypes", workflow["type"].id, {"possible_creation_roles": [workflow["quality"].id]})
        assert _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).status_code == 403
        assert _create(client, auth_headers, people["quality"], type_id=workflow["type"].id).status_code == 201
        assert _create(client, auth_headers, people["admin"], type_id=workflow["type"].id).status_code == 201

    def test_subcategory_must_match_category(self, client, workflow, people, auth_headers):
        other = mds.create_item("categories", {"name": "Seguridad"})
        sub = mds.create_item("subcategories", {"name": "EPIs", "category_id": other.id})
        res = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id,
                      category_id=workflow["category"].id, subcategory_id=sub.id)
        assert res.status_code == 422
        assert res.get_json()["details"] == {"subcategory_id": "mismatch"}


# ═══════════════════════════════════════════════════════════════════════════════
# Block 2: Visibility
# ═══════════════════════════════════════════════════════════════════════════════

class TestVisibility:

    def test_readers_see_outsiders_do_not(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        url = f"/api/v1/actions/{action['id']}"

        quality = client.get(url, headers=auth_headers(people["quality"]))
        assert quality.status_code == 200
        assert quality.get_json()["can_edit"] is False

        assert client.get(url, headers=auth_headers(people["outsider"])).status_code == 404
        listed = client.get("/api/v1/actions", headers=auth_headers(people["outsider"])).get_json()
        assert listed["total"] == 0

        assert client.get(url, headers=auth_headers(people["admin"])).get_json()["can_edit"] is True

    def test_reader_cannot_edit(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        res = client.put(f"/api/v1/actions/{action['id']}", json={"title": "Changed"},
                         headers=auth_headers(people["quality"]))
        assert res.status_code == 403

    def test_without_rule_only_creator_reads_and_nobody_authors(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["ungoverned"].id).get_json()
        assert action["reader_emails"] == ["luis@acme.com"]
        assert action["author_emails"] == []
        assert _transition(client, auth_headers, people["creator"], action["id"], "submit").status_code == 403
        assert _transition(client, auth_headers, people["admin"], action["id"], "submit").status_code == 200

    def test_list_filters(self, client, workflow, people, auth_headers):
        _create(client, auth_headers, people["creator"], type_id=workflow["type"].id)
        _create(client, auth_headers, people["creator"], type_id=workflow["ungoverned"].id)
        headers = auth_headers(people["creator"])
        assert client.get("/api/v1/actions", headers=headers).get_json()["total"] == 2
        by_type = client.get(f"/api/v1/actions?type_id={workflow['ungoverned'].id}", headers=headers).get_json()
        assert by_type["total"] == 1
        assert client.get("/api/v1/actions?status=bogus", headers=headers).status_code == 422


# ═══════════════════════════════════════════════════════════════════════════════
# Block 3: Lifecycle
# ═══════════════════════════════════════════════════════════════════════════════

class TestLifecycle:

    def test_full_lifecycle(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        aid = action["id"]

        steps = [
            (people["creator"], "submit", None, "pending_analysis"),
            (people["quality"], "start_analysis", None, "in_analysis"),
            (people["analyst"], "submit_analysis", {"analysis": {"root_cause": "Junta gastada"}}, "pending_verification"),
            (people["quality"], "start_verification", None, "in_verification"),
            (people["quality"], "submit_verification", {"verification": {"effective": True}}, "pending_closure"),
            (people["quality"], "close", {"closure": {"is_compliant": False, "notes": "Reincide"}}, "closed"),
        ]
        for user, name, payload, expected in steps:
            res = _transition(client, auth_headers, user, aid, name, payload)
            assert res.status_code == 200, (name, res.get_json())
            assert res.get_json()["new_status"] == expected

        detail = client.get(f"/api/v1/actions/{aid}", headers=auth_headers(people["quality"])).get_json()
        assert detail["status_label"] == "Finalizada (No Conforme)"
        assert detail["analysis"]["root_cause"] == "Junta gastada"
        assert detail["analysis"]["by"] == "analyst@acme.com"
        assert detail["closure"]["is_compliant"] is False

    def test_status_change_reresolves_access(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        _transition(client, auth_headers, people["creator"], action["id"], "submit")
        _db.session.expire_all()
        row = _db.session.get(ImprovementAction, action["id"])
        assert row.author_emails == ["quality@acme.com"]
        # The creator lost authorship in pending_analysis
        res = _transition(client, auth_headers, people["creator"], action["id"], "return_to_draft")
        assert res.status_code == 403

    def test_invalid_transition_is_409(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        res = _transition(client, auth_headers, people["admin"], action["id"], "close", {"closure": {"is_compliant": True}})
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"
        assert res.get_json()["details"]["current_status"] == "draft"

    def test_unknown_transition_is_409(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        assert _transition(client, auth_headers, people["admin"], action["id"], "archive").status_code == 409

    def test_phase_records_required(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        admin = people["admin"]
        _transition(client, auth_headers, admin, action["id"], "submit")
        _transition(client, auth_headers, admin, action["id"], "start_analysis")
        res = _transition(client, auth_headers, admin, action["id"], "submit_analysis")
        assert res.status_code == 409
        _db.session.expire_all()
        assert _db.session.get(ImprovementAction, action["id"]).status == "in_analysis"

    def test_close_requires_boolean_compliance(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        admin = people["admin"]
        for name, payload in [
            ("submit", None), ("start_analysis", None), ("submit_analysis", {"analysis": {"x": 1}}),
            ("start_verification", None), ("submit_verification", {"verification": {"y": 1}}),
        ]:
            assert _transition(client, auth_headers, admin, action["id"], name, payload).status_code == 200
        res = _transition(client, auth_headers, admin, action["id"], "close", {"closure": {"is_compliant": "yes"}})
        assert res.status_code == 409

    def test_type_locked_after_draft(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        admin = people["admin"]
        _transition(client, auth_headers, admin, action["id"], "submit")
        res = client.put(f"/api/v1/actions/{action['id']}", json={"type_id": workflow["ungoverned"].id},
                         headers=auth_headers(admin))
        assert res.status_code == 422


# ═══════════════════════════════════════════════════════════════════════════════
# Block 4: Rule changes & Pattern roles
# ═══════════════════════════════════════════════════════════════════════════════

class TestAccessRefresh:

    def test_rule_change_updates_existing_actions(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        assert client.get(f"/api/v1/actions/{action['id']}", headers=auth_headers(people["analyst"])).status_code == 404

        pms.upsert_rule(workflow["type"].id, "draft", [workflow["analyst"].id], [workflow["originator"].id])
        assert client.get(f"/api/v1/actions/{action['id']}", headers=auth_headers(people["analyst"])).status_code == 200

    def test_pattern_role_resolves_from_category(self, client, workflow, people, auth_headers, make_user):
        pms.upsert_rule(workflow["type"].id, "draft", [workflow["area"].id], [workflow["originator"].id])
        lead = make_user(name="Lead", email="lead-calidad@acme.com")
        with_cat = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id,
                           category_id=workflow["category"].id).get_json()
        without_cat = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()

        assert "lead-calidad@acme.com" in with_cat["reader_emails"]
        assert without_cat["reader_emails"] == ["luis@acme.com"]
        assert client.get(f"/api/v1/actions/{with_cat['id']}", headers=auth_headers(lead)).status_code == 200

    def test_deleting_rule_falls_back_to_creator_only(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        url = f"/api/v1/actions/{action['id']}"
        assert client.get(url, headers=auth_headers(people["quality"])).status_code == 200

        pms.delete_rule(pms.get_rule(workflow["type"].id, "draft").id)

        assert client.get(url, headers=auth_headers(people["quality"])).status_code == 404
        _db.session.expire_all()
        stored = _db.session.get(ImprovementAction, action["id"])
        assert stored.reader_emails == ["luis@acme.com"]
        assert stored.author_emails == []

    def test_moving_rule_refreshes_old_status(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        url = f"/api/v1/actions/{action['id']}"
        type_id = workflow["type"].id
        pms.delete_rule(pms.get_rule(type_id, "closed").id)
        draft_rule = pms.get_rule(type_id, "draft")

        pms.upsert_rule(type_id, "closed", [workflow["quality"].id], [workflow["originator"].id],
                        rule_id=draft_rule.id)

        assert pms.get_rule(type_id, "draft") is None
        assert client.get(url, headers=auth_headers(people["quality"])).status_code == 404
        _db.session.expire_all()
        assert _db.session.get(ImprovementAction, action["id"]).reader_emails == ["luis@acme.com"]

    def test_role_email_change_moves_access(self, client, workflow, people, auth_headers, make_user):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        url = f"/api/v1/actions/{action['id']}"
        successor = make_user(name="Nueva Calidad", email="newq@acme.com")

        mds.update_item("responsibilityRoles", workflow["quality"].id, {"email": "newq@acme.com"})

        assert client.get(url, headers=auth_headers(people["quality"])).status_code == 404
        assert client.get(url, headers=auth_headers(successor)).status_code == 200
        _db.session.expire_all()
        assert "quality@acme.com" not in _db.session.get(ImprovementAction, action["id"]).reader_emails

    def test_category_rename_re_resolves_pattern_roles(self, client, workflow, people, auth_headers):
        pms.upsert_rule(workflow["type"].id, "draft", [workflow["area"].id], [workflow["originator"].id])
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id,
                         category_id=workflow["category"].id).get_json()
        assert "lead-calidad@acme.com" in action["reader_emails"]

        mds.update_item("categories", workflow["category"].id, {"name": "Mantenimiento"})

        _db.session.expire_all()
        readers = _db.session.get(ImprovementAction, action["id"]).reader_emails
        assert "lead-mantenimiento@acme.com" in readers
        assert "lead-calidad@acme.com" not in readers


# ═══════════════════════════════════════════════════════════════════════════════
# Block 5: Comments & attachments
# ═══════════════════════════════════════════════════════════════════════════════

class TestActivity:

    def test_reader_comments(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        res = client.post(f"/api/v1/actions/{action['id']}/comments", json={"text": " Revisado "},
                          headers=auth_headers(people["quality"]))
        assert res.status_code == 201
        assert res.get_json()["text"] == "Revisado"
        detail = client.get(f"/api/v1/actions/{action['id']}", headers=auth_headers(people["creator"])).get_json()
        assert [c["text"] for c in detail["comments"]] == ["Revisado"]

    def test_comment_validation_and_visibility(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        url = f"/api/v1/actions/{action['id']}/comments"
        assert client.post(url, json={"text": ""}, headers=auth_headers(people["creator"])).status_code == 422
        assert client.post(url, json={"text": "hola"}, headers=auth_headers(people["outsider"])).status_code == 404

    def test_attachments_authors_only(self, client, workflow, people, auth_headers):
        action = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        url = f"/api/v1/actions/{action['id']}/attachments"
        body = {"name": "foto.jpg", "url": "https://storage.acme.com/foto.jpg"}
        assert client.post(url, json=body, headers=auth_headers(people["quality"])).status_code == 403
        assert client.post(url, json={**body, "url": "ftp://x"}, headers=auth_headers(people["creator"])).status_code == 422
        res = client.post(url, json=body, headers=auth_headers(people["creator"]))
        assert res.status_code == 201
        assert res.get_json()["name"] == "foto.jpg"


# ═══════════════════════════════════════════════════════════════════════════════
# Block 6: Reports
# ═══════════════════════════════════════════════════════════════════════════════

class TestReports:

    def test_summary_counts_visible_actions(self, client, workflow, people, auth_headers):
        first = _create(client, auth_headers, people["creator"], type_id=workflow["type"].id).get_json()
        _create(client, auth_headers, people["creator"], type_id=workflow["ungoverned"].id)
        _transition(client, auth_headers, people["creator"], first["id"], "submit")

        summary = client.get("/api/v1/reports/summary", headers=auth_headers(people["creator"])).get_json()
        assert summary["total"] == 2
        by_status = {row["status"]: row["value"] for row in summary["by_status"]}
        assert len(by_status) == 7
        assert by_status["draft"] == 1
        assert by_status["pending_analysis"] == 1
        assert {row["name"] for row in summary["by_type"]} == {"Correctiva", "Mejora"}
        assert summary["closed_non_compliant"] == 0

        outsider = client.get("/api/v1/reports/summary", headers=auth_headers(people["outsider"])).get_json()
        assert outsider["total"] == 0
