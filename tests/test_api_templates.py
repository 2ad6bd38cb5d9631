"""
tests/test_api_templates.py - process template endpoints.

Covers:
    1. Create with seq-based dependencies resolved to step ids
    2. Duplicate name → 409
    3. Dangling seq / cycle / bad basis / bad offset → 422 before commit
    4. List, detail, activate/deactivate
    5. Schedule preview (values, invalid goal → 400)
"""

from caseflow.models.process import ProcessTemplate

BASE = "/api/v1/templates"

CHAIN = [
    {"seq": 1, "name": "Collect documents", "basis": "goal", "offset_days": -30,
     "required_artifacts": [{"kind": "document", "description": "ID copy"}]},
    {"seq": 2, "name": "Review", "basis": "prev", "offset_days": 2, "depends_on": [1]},
    {"seq": 3, "name": "Submit", "basis": "previous", "offset_days": 3, "depends_on": [2]},
]


class TestCreate:
    def test_create_resolves_dependencies(self, make_template):
        tpl = make_template(CHAIN)
        steps = tpl["step_templates"]
        assert [s["seq"] for s in steps] == [1, 2, 3]
        assert steps[0]["depends_on"] == []
        assert steps[1]["depends_on"] == [steps[0]["id"]]
        assert steps[2]["depends_on"] == [steps[1]["id"]]
        assert steps[2]["basis"] == "prev"
        assert steps[0]["required_artifacts"] == [{"kind": "document", "description": "ID copy"}]
        assert tpl["is_active"] is True

    def test_duplicate_name(self, client, make_template):
        make_template(CHAIN, name="Dup")
        res = client.post(BASE, json={"name": "Dup", "steps": CHAIN})
        assert res.status_code == 409

    def test_dangling_seq_rejected(self, client):
        steps = [{"seq": 1, "name": "A", "basis": "prev", "offset_days": 1, "depends_on": [5]}]
        res = client.post(BASE, json={"name": "Dangling", "steps": steps})
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_SCHEDULE_DANGLING_DEPENDENCY"
        assert ProcessTemplate.query.count() == 0

    def test_cycle_rejected(self, client):
        steps = [
            {"seq": 1, "name": "A", "basis": "prev", "offset_days": 1, "depends_on": [2]},
            {"seq": 2, "name": "B", "basis": "prev", "offset_days": 1, "depends_on": [1]},
        ]
        res = client.post(BASE, json={"name": "Cycle", "steps": steps})
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_SCHEDULE_CIRCULAR_DEPENDENCY"
        assert body["details"]["unresolved_ids"] == [1, 2]
        assert ProcessTemplate.query.count() == 0

    def test_bad_basis_rejected(self, client):
        steps = [{"seq": 1, "name": "A", "basis": "sometime", "offset_days": 1}]
        res = client.post(BASE, json={"name": "Basis", "steps": steps})
        assert res.status_code == 422

    def test_offset_out_of_range_rejected(self, client):
        steps = [{"seq": 1, "name": "A", "basis": "goal", "offset_days": -400}]
        res = client.post(BASE, json={"name": "Offset", "steps": steps})
        assert res.status_code == 422

    def test_duplicate_seq_rejected(self, client):
        steps = [
            {"seq": 1, "name": "A", "basis": "goal", "offset_days": -1},
            {"seq": 1, "name": "B", "basis": "goal", "offset_days": -2},
        ]
        assert client.post(BASE, json={"name": "Seq", "steps": steps}).status_code == 422

    def test_name_required(self, client):
        res = client.post(BASE, json={"steps": CHAIN})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_non_json_body_rejected(self, client):
        res = client.post(BASE, data="name=x", content_type="application/x-www-form-urlencoded")
        assert res.status_code == 415

    def test_plain_text_body_rejected(self, client):
        res = client.post(BASE, data='{"name": "x"}', content_type="text/plain")
        assert res.status_code == 415
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"


class TestReadAndToggle:
    def test_list_and_detail(self, client, make_template):
        tpl = make_template(CHAIN)
        res = client.get(BASE)
        assert res.status_code == 200
        assert res.get_json()["total"] == 1
        assert "step_templates" not in res.get_json()["items"][0]

        res = client.get(f"{BASE}/{tpl['id']}")
        assert res.status_code == 200
        assert len(res.get_json()["step_templates"]) == 3

    def test_unknown_template_404(self, client):
        res = client.get(f"{BASE}/999")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_deactivate_and_filter(self, client, make_template):
        tpl = make_template(CHAIN)
        res = client.post(f"{BASE}/{tpl['id']}/deactivate")
        assert res.status_code == 200
        assert res.get_json()["is_active"] is False
        assert client.get(f"{BASE}?active=true").get_json()["total"] == 0

        client.post(f"{BASE}/{tpl['id']}/activate")
        assert client.get(f"{BASE}?active=true").get_json()["total"] == 1


class TestSchedulePreview:
    def test_preview_values(self, client, make_template):
        tpl = make_template(CHAIN)
        res = client.post(f"{BASE}/{tpl['id']}/schedule-preview", json={"goal_date": "2025-12-31"})
        assert res.status_code == 200
        plan = res.get_json()
        assert plan["goal_date"] == "2025-12-31"
        assert [(s["start_date"], s["due_date"]) for s in plan["steps"]] == [
            ("2025-10-09", "2025-11-19"),
            ("2025-11-20", "2025-11-21"),
            ("2025-11-24", "2025-11-26"),
        ]

    def test_preview_uses_holiday_table(self, client, make_template):
        tpl = make_template(CHAIN)
        client.post("/api/v1/holidays", json={"country_code": "JP", "date": "2025-11-24"})
        res = client.post(f"{BASE}/{tpl['id']}/schedule-preview", json={"goal_date": "2025-12-31"})
        assert res.get_json()["steps"][0]["due_date"] == "2025-11-18"

    def test_preview_country_code(self, client, make_template):
        tpl = make_template(CHAIN)
        client.post("/api/v1/holidays", json={"country_code": "US", "date": "2025-11-24"})
        res = client.post(
            f"{BASE}/{tpl['id']}/schedule-preview",
            json={"goal_date": "2025-12-31", "country_code": "us"},
        )
        body = res.get_json()
        assert body["country_code"] == "US"
        assert body["steps"][0]["due_date"] == "2025-11-18"

    def test_invalid_goal_date(self, client, make_template):
        tpl = make_template(CHAIN)
        res = client.post(f"{BASE}/{tpl['id']}/schedule-preview", json={"goal_date": "someday"})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_SCHEDULE_INVALID_GOAL_DATE"

    def test_goal_exceeded_reports_violations(self, client, make_template):
        tpl = make_template([
            {"seq": 1, "name": "A", "basis": "goal", "offset_days": -5},
            {"seq": 2, "name": "B", "basis": "prev", "offset_days": 30, "depends_on": [1]},
        ])
        res = client.post(f"{BASE}/{tpl['id']}/schedule-preview", json={"goal_date": "2025-12-31"})
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_SCHEDULE_GOAL_EXCEEDED"
        assert body["details"]["violations"][0]["code"] == "goal_exceeded"
