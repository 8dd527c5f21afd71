"""Functional contract tests for the HTTP API.

Every call goes through FastAPI's ``TestClient`` against the migrated SQLite
database. Success bodies use the ``{"success": true, "data": ...}`` envelope;
errors are ``application/problem+json`` and validate against
``docs/schemas/problem.schema.json``.
"""

from __future__ import annotations

OWNER = "user-owner"
OTHER = "user-other"


def _assert_problem(response, status: int, code: str, wire_validator) -> dict:
    assert response.status_code == status, response.text
    assert response.headers["content-type"].startswith("application/problem+json")
    body = response.json()
    wire_validator("problem.schema.json", body)
    assert body["code"] == code
    assert body["success"] is False
    return body


# -----------------------------
# Ambient surface
# -----------------------------


def test_health_reports_ok(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_request_id_is_echoed_or_generated(client):
    echoed = client.get("/health", headers={"X-Request-Id": "req-123"})
    assert echoed.headers["X-Request-Id"] == "req-123"
    generated = client.get("/health")
    assert generated.headers["X-Request-Id"]
    assert generated.headers["X-Request-Id"] != "req-123"


def test_cors_preflight_exposes_request_id(client):
    response = client.options(
        "/api/resources",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "DELETE"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
    simple = client.get("/api/resources", headers={"Origin": "http://localhost:5173"})
    assert "x-request-id" in simple.headers.get("access-control-expose-headers", "").lower()


def test_unknown_route_is_problem_json(client, wire_validator):
    _assert_problem(client.get("/api/nothing-here"), 404, "HTTP_404", wire_validator)


# -----------------------------
# Resources
# -----------------------------


def test_create_resource_returns_full_tree(client, as_user, resource_payload, wire_validator):
    response = client.post("/api/resources", json=resource_payload(sections=3), headers=as_user(OWNER))
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    wire_validator("resource.schema.json", data)
    assert data["ownerId"] == OWNER
    assert [s["number"] for s in data["sections"]] == [1, 2, 3]
    assert [m["orderNum"] for m in data["sections"][0]["markers"]] == [1, 2]
    assert data["createdAt"].endswith("Z")


def test_client_supplied_ids_are_ignored(client, as_user, resource_payload):
    payload = resource_payload(sections=1)
    payload["id"] = "client-id"
    payload["sections"][0]["id"] = "client-section"
    data = client.post("/api/resources", json=payload, headers=as_user(OWNER)).json()["data"]
    assert data["id"] != "client-id"
    assert data["sections"][0]["id"] != "client-section"


def test_create_resource_requires_identity(client, resource_payload, wire_validator):
    _assert_problem(client.post("/api/resources", json=resource_payload()), 401, "UNAUTHENTICATED", wire_validator)


def test_create_resource_validation_errors_have_paths(client, as_user, wire_validator):
    response = client.post(
        "/api/resources",
        json={"name": "", "type": "magazine", "sections": [{"markers": [{"note": "x"}]}]},
        headers=as_user(OWNER),
    )
    body = _assert_problem(response, 400, "VALIDATION_ERROR", wire_validator)
    paths = {e["path"]: e["code"] for e in body["errors"]}
    assert paths["$.name"] == "too_short"
    assert paths["$.type"] == "invalid_enum"
    assert paths["$.sections[0].markers[0].position"] == "missing"


def test_create_resource_rejects_empty_sections(client, as_user, resource_payload, wire_validator):
    payload = resource_payload()
    payload["sections"] = []
    body = _assert_problem(client.post("/api/resources", json=payload, headers=as_user(OWNER)), 400, "VALIDATION_ERROR", wire_validator)
    assert {"path": "$.sections", "code": "min_items"} in body["errors"]
    assert client.get("/api/resources", headers=as_user(OWNER)).json()["data"] == []


def test_non_object_body_is_rejected(client, as_user, wire_validator):
    response = client.post("/api/resources", json=["not", "an", "object"], headers=as_user(OWNER))
    body = _assert_problem(response, 400, "VALIDATION_ERROR", wire_validator)
    assert body["errors"] == [{"path": "$", "code": "invalid_type"}]


def test_malformed_json_is_validation_error(client, as_user, wire_validator):
    response = client.post(
        "/api/resources",
        content=b"{not json",
        headers={**as_user(OWNER), "Content-Type": "application/json"},
    )
    _assert_problem(response, 400, "VALIDATION_ERROR", wire_validator)


def test_get_resource_sorts_markers_for_books(client, create_resource, as_user):
    resource = create_resource(sections=1)
    rid, sid = resource["id"], resource["sections"][0]["id"]
    for position in ("10", "2"):
        client.post(
            f"/api/resources/{rid}/sections/{sid}/markers",
            json={"position": position, "note": "n"},
            headers=as_user(OWNER),
        )
    data = client.get(f"/api/resources/{rid}", headers=as_user(OWNER)).json()["data"]
    assert [m["position"] for m in data["sections"][0]["markers"]] == ["2", "10", "10", "11"]


def test_get_missing_resource_is_404(client, as_user, wire_validator):
    _assert_problem(client.get("/api/resources/nope", headers=as_user(OWNER)), 404, "NOT_FOUND", wire_validator)


def test_update_resource_metadata(client, create_resource, as_user, wire_validator):
    resource = create_resource()
    response = client.put(
        f"/api/resources/{resource['id']}",
        json={"name": "Second Edition", "author": None},
        headers=as_user(OWNER),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    wire_validator("resource.schema.json", data)
    assert data["name"] == "Second Edition"
    assert data["author"] is None
    assert [s["id"] for s in data["sections"]] == [s["id"] for s in resource["sections"]]


def test_update_resource_rejects_null_name(client, create_resource, as_user, wire_validator):
    resource = create_resource()
    response = client.put(f"/api/resources/{resource['id']}", json={"name": None}, headers=as_user(OWNER))
    _assert_problem(response, 400, "VALIDATION_ERROR", wire_validator)


def test_blank_resource_names_are_rejected(client, create_resource, as_user, wire_validator):
    created = client.post(
        "/api/resources",
        json={"name": "   ", "type": "book", "sections": [{}]},
        headers=as_user(OWNER),
    )
    body = _assert_problem(created, 400, "VALIDATION_ERROR", wire_validator)
    assert {"path": "$.name", "code": "invalid_value"} in body["errors"]

    resource = create_resource()
    updated = client.put(f"/api/resources/{resource['id']}", json={"name": "  "}, headers=as_user(OWNER))
    _assert_problem(updated, 400, "VALIDATION_ERROR", wire_validator)
    padded = client.put(f"/api/resources/{resource['id']}", json={"name": "  Trimmed  "}, headers=as_user(OWNER))
    assert padded.json()["data"]["name"] == "Trimmed"


def test_visibility_toggle_returns_flag(client, create_resource, as_user):
    resource = create_resource()
    response = client.patch(
        f"/api/resources/{resource['id']}/visibility", json={"isPublic": True}, headers=as_user(OWNER)
    )
    assert response.status_code == 200
    assert response.json()["data"] == {"id": resource["id"], "isPublic": True}


def test_visibility_requires_boolean(client, create_resource, as_user, wire_validator):
    resource = create_resource()
    response = client.patch(
        f"/api/resources/{resource['id']}/visibility", json={"isPublic": "yes"}, headers=as_user(OWNER)
    )
    _assert_problem(response, 400, "VALIDATION_ERROR", wire_validator)


def test_delete_resource_returns_null_data(client, create_resource, as_user, wire_validator):
    resource = create_resource()
    response = client.delete(f"/api/resources/{resource['id']}", headers=as_user(OWNER))
    assert response.status_code == 200
    assert response.json() == {"success": True, "data": None}
    _assert_problem(client.get(f"/api/resources/{resource['id']}", headers=as_user(OWNER)), 404, "NOT_FOUND", wire_validator)


# -----------------------------
# Sections
# -----------------------------


def test_add_section_returns_section_and_full_list(client, create_resource, as_user, wire_validator):
    resource = create_resource(sections=2)
    response = client.post(f"/api/resources/{resource['id']}/sections", json={}, headers=as_user(OWNER))
    assert response.status_code == 201
    data = response.json()["data"]
    wire_validator("section.schema.json", data["section"])
    assert data["section"]["number"] == 3
    assert data["section"]["title"] == "Chapter 3"
    assert [s["number"] for s in data["sections"]] == [1, 2, 3]


def test_add_section_accepts_missing_body(client, create_resource, as_user):
    resource = create_resource(sections=1, type="podcast")
    response = client.post(f"/api/resources/{resource['id']}/sections", headers=as_user(OWNER))
    assert response.status_code == 201
    assert response.json()["data"]["section"]["title"] == "Hour 2"


def test_rename_section(client, create_resource, as_user, wire_validator):
    resource = create_resource()
    sid = resource["sections"][1]["id"]
    response = client.put(f"/api/resources/{resource['id']}/sections/{sid}", json={"title": "Middle"}, headers=as_user(OWNER))
    assert response.status_code == 200
    assert response.json()["data"]["title"] == "Middle"
    assert response.json()["data"]["number"] == 2
    blank = client.put(f"/api/resources/{resource['id']}/sections/{sid}", json={"title": "   "}, headers=as_user(OWNER))
    _assert_problem(blank, 400, "VALIDATION_ERROR", wire_validator)


def test_delete_section_renumbers_siblings(client, create_resource, as_user):
    resource = create_resource(sections=4)
    ids = [s["id"] for s in resource["sections"]]
    response = client.delete(f"/api/resources/{resource['id']}/sections/{ids[1]}", headers=as_user(OWNER))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["deletedSectionId"] == ids[1]
    assert [(s["id"], s["number"]) for s in data["sections"]] == [(ids[0], 1), (ids[2], 2), (ids[3], 3)]
    assert data["sections"][1]["markers"] == resource["sections"][2]["markers"]


def test_delete_unknown_section_is_404(client, create_resource, as_user, wire_validator):
    resource = create_resource()
    response = client.delete(f"/api/resources/{resource['id']}/sections/missing", headers=as_user(OWNER))
    body = _assert_problem(response, 404, "NOT_FOUND", wire_validator)
    assert body["error"] == "Section not found"


# -----------------------------
# Markers
# -----------------------------


def test_add_marker_returns_marker_and_sorted_list(client, create_resource, as_user, wire_validator):
    resource = create_resource(sections=1)
    rid, sid = resource["id"], resource["sections"][0]["id"]
    response = client.post(
        f"/api/resources/{rid}/sections/{sid}/markers",
        json={"position": "5", "note": "early", "type": "question", "quote": "a line"},
        headers=as_user(OWNER),
    )
    assert response.status_code == 201
    data = response.json()["data"]
    wire_validator("marker.schema.json", data["marker"])
    assert data["marker"]["orderNum"] == 3
    assert data["marker"]["authorId"] == OWNER
    assert [m["position"] for m in data["markers"]] == ["5", "10", "11"]


def test_add_marker_accepts_legacy_order_field(client, create_resource, as_user):
    resource = create_resource(sections=1)
    rid, sid = resource["id"], resource["sections"][0]["id"]
    response = client.post(
        f"/api/resources/{rid}/sections/{sid}/markers",
        json={"position": "7", "note": "n", "order": 42},
        headers=as_user(OWNER),
    )
    assert response.json()["data"]["marker"]["orderNum"] == 42


def test_add_marker_rejects_unknown_type(client, create_resource, as_user, wire_validator):
    resource = create_resource(sections=1)
    rid, sid = resource["id"], resource["sections"][0]["id"]
    response = client.post(
        f"/api/resources/{rid}/sections/{sid}/markers",
        json={"position": "1", "note": "n", "type": "rant"},
        headers=as_user(OWNER),
    )
    body = _assert_problem(response, 400, "VALIDATION_ERROR", wire_validator)
    assert {"path": "$.type", "code": "invalid_enum"} in body["errors"]


def test_update_and_delete_marker(client, create_resource, as_user):
    resource = create_resource(sections=1)
    rid, sid = resource["id"], resource["sections"][0]["id"]
    marker = resource["sections"][0]["markers"][0]
    base = f"/api/resources/{rid}/sections/{sid}/markers/{marker['id']}"

    updated = client.put(base, json={"position": "99", "note": "moved"}, headers=as_user(OWNER)).json()["data"]
    assert updated["marker"]["position"] == "99"
    assert [m["position"] for m in updated["markers"]] == ["11", "99"]

    deleted = client.delete(base, headers=as_user(OWNER)).json()["data"]
    assert deleted["deletedMarkerId"] == marker["id"]
    assert [m["position"] for m in deleted["markers"]] == ["11"]


def test_marker_update_rejects_blank_position(client, create_resource, as_user, wire_validator):
    resource = create_resource(sections=1)
    section = resource["sections"][0]
    marker = section["markers"][0]
    base = f"/api/resources/{resource['id']}/sections/{section['id']}/markers/{marker['id']}"

    blank = client.put(base, json={"position": "   "}, headers=as_user(OWNER))
    body = _assert_problem(blank, 400, "VALIDATION_ERROR", wire_validator)
    assert {"path": "$.position", "code": "invalid_value"} in body["errors"]

    padded = client.put(base, json={"position": " 42 "}, headers=as_user(OWNER)).json()["data"]
    assert padded["marker"]["position"] == "42"


def test_marker_under_wrong_section_is_404(client, create_resource, as_user, wire_validator):
    resource = create_resource(sections=2)
    first, second = resource["sections"]
    marker_id = first["markers"][0]["id"]
    response = client.delete(
        f"/api/resources/{resource['id']}/sections/{second['id']}/markers/{marker_id}", headers=as_user(OWNER)
    )
    _assert_problem(response, 404, "NOT_FOUND", wire_validator)


# -----------------------------
# Storage failures
# -----------------------------


def test_storage_failure_is_generic_500(client, create_resource, as_user, mocker, wire_validator):
    from sqlalchemy.exc import OperationalError

    resource = create_resource(sections=3)
    mocker.patch(
        "marginalia.logic.repository_resources.renumber_after_delete",
        side_effect=OperationalError("UPDATE sections", {}, Exception("database is locked")),
    )
    sid = resource["sections"][0]["id"]
    response = client.delete(f"/api/resources/{resource['id']}/sections/{sid}", headers=as_user(OWNER))
    body = _assert_problem(response, 500, "PERSISTENCE_ERROR", wire_validator)
    assert "locked" not in body["error"]
    mocker.stopall()
    after = client.get(f"/api/resources/{resource['id']}", headers=as_user(OWNER)).json()["data"]
    assert [s["number"] for s in after["sections"]] == [1, 2, 3]


def test_failed_marker_mutations_leave_storage_unchanged(client, create_resource, as_user, mocker, wire_validator):
    from sqlalchemy.exc import OperationalError

    from marginalia.logic.repository_resources import ResourceRepository

    resource = create_resource(sections=1)
    rid, section = resource["id"], resource["sections"][0]
    base = f"/api/resources/{rid}/sections/{section['id']}/markers"
    mocker.patch.object(
        ResourceRepository,
        "_sorted_section_markers",
        side_effect=OperationalError("SELECT markers", {}, Exception("database is locked")),
    )

    added = client.post(base, json={"position": "5", "note": "n"}, headers=as_user(OWNER))
    _assert_problem(added, 500, "PERSISTENCE_ERROR", wire_validator)
    deleted = client.delete(f"{base}/{section['markers'][0]['id']}", headers=as_user(OWNER))
    _assert_problem(deleted, 500, "PERSISTENCE_ERROR", wire_validator)

    mocker.stopall()
    after = client.get(f"/api/resources/{rid}", headers=as_user(OWNER)).json()["data"]
    assert after["sections"][0]["markers"] == section["markers"]
