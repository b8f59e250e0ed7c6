import json
import uuid
from datetime import datetime, timezone

from compliance_portal import audit

from .conftest import (
    TestingSessionLocal,
    client,
    create_research_activity,
    create_scientist,
    ibc_payload,
    ibc_setup,
    reviewer_headers,
)


def _create(client, setup, **overrides):
    payload = ibc_payload(setup["pi"]["id"], [setup["activity"]["id"]], **overrides)
    resp = client.post("/api/ibc-applications", json=payload, headers=setup["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_create_draft_assigns_number_and_defaults(client, ibc_setup):
    data = _create(client, ibc_setup)
    year = datetime.now(timezone.utc).year
    assert data["ibcNumber"].startswith(f"IBC-{year}-")
    assert len(data["ibcNumber"].rsplit("-", 1)[1]) == 3
    assert data["status"] == "draft"
    assert data["submissionDate"] is None
    assert data["riskLevel"] == "moderate"
    assert data["principalInvestigator"]["id"] == ibc_setup["pi"]["id"]
    assert [a["id"] for a in data["researchActivities"]] == [ibc_setup["activity"]["id"]]
    assert data["recombinantSyntheticNucleicAcid"] is False
    assert data["cellLines"] == []


def test_numbers_increment_within_year(client, ibc_setup):
    first = _create(client, ibc_setup)["ibcNumber"]
    second = _create(client, ibc_setup)["ibcNumber"]
    assert int(second.rsplit("-", 1)[1]) == int(first.rsplit("-", 1)[1]) + 1


def test_create_requires_known_references(client, ibc_setup):
    missing_pi = client.post(
        "/api/ibc-applications",
        json=ibc_payload(str(uuid.uuid4()), [ibc_setup["activity"]["id"]]),
        headers=ibc_setup["headers"],
    )
    assert missing_pi.status_code == 404
    assert missing_pi.json()["detail"] == "Principal investigator not found"

    ghost = str(uuid.uuid4())
    missing_activity = client.post(
        "/api/ibc-applications",
        json=ibc_payload(ibc_setup["pi"]["id"], [ghost]),
        headers=ibc_setup["headers"],
    )
    assert missing_activity.status_code == 404
    assert missing_activity.json()["detail"] == f"Research activity with ID {ghost} not found"

    no_title = client.post(
        "/api/ibc-applications",
        json=ibc_payload(ibc_setup["pi"]["id"], [], title="  "),
        headers=ibc_setup["headers"],
    )
    assert no_title.status_code == 422


def test_patch_is_draft_flag_drives_status(client, ibc_setup):
    app_id = _create(client, ibc_setup)["id"]
    headers = ibc_setup["headers"]

    draft = client.patch(f"/api/ibc-applications/{app_id}", json={"shortTitle": "HEK", "isDraft": True}, headers=headers)
    assert draft.status_code == 200
    assert draft.json()["status"] == "draft"
    assert draft.json()["shortTitle"] == "HEK"

    submitted = client.patch(
        f"/api/ibc-applications/{app_id}",
        json={"biosafetyLevel": "BSL-3", "isDraft": False},
        headers=headers,
    )
    body = submitted.json()
    assert body["status"] == "submitted"
    assert body["submissionDate"] is not None
    assert body["riskLevel"] == "high"
    # fields not in the body are kept
    assert body["shortTitle"] == "HEK"

    comments = client.get(f"/api/ibc-applications/{app_id}/comments", headers=headers).json()
    status_changes = [c for c in comments if c["commentType"] == "status_change"]
    assert len(status_changes) == 1
    assert status_changes[0]["statusFrom"] == "draft"
    assert status_changes[0]["statusTo"] == "submitted"
    assert status_changes[0]["authorName"] == "System"

    db = TestingSessionLocal()
    try:
        actions = [row.action for row in audit.list_for_target(db, "ibc_application", app_id)]
    finally:
        db.close()
    assert actions == ["ibc_application.create", "ibc_application.update", "ibc_application.submit"]


def test_create_submitted_directly(client, ibc_setup):
    data = _create(client, ibc_setup, isDraft=False)
    assert data["status"] == "submitted"
    assert data["submissionDate"] is not None


def test_temporary_ids_are_replaced_and_references_follow(client, ibc_setup):
    app_id = _create(client, ibc_setup)["id"]
    body = {
        "humanNonHumanPrimateMaterial": True,
        "cellLines": [
            {
                "id": "tmp-hek",
                "name": "HEK293",
                "biosafetyLevel": "BSL-2",
                "acquisitionSources": ["atcc"],
                "passage": "12",
                "exposureTypes": ["cell_culture"],
            }
        ],
        "hazardousProcedures": [
            {
                "id": "tmp-proc",
                "procedure": "Lentiviral transduction",
                "cellLineId": "tmp-hek",
                "engineeringControls": {"classIIBiosafetyCabinet": True},
                "ppe": {"gloves": True},
            }
        ],
        "isDraft": True,
    }
    resp = client.patch(f"/api/ibc-applications/{app_id}", json=body, headers=ibc_setup["headers"])
    assert resp.status_code == 200, resp.text
    data = resp.json()
    cell_line_id = data["cellLines"][0]["id"]
    assert not cell_line_id.startswith("tmp-")
    uuid.UUID(cell_line_id)
    assert data["hazardousProcedures"][0]["cellLineId"] == cell_line_id
    assert data["hazardousProcedures"][0]["engineeringControls"]["classIIBiosafetyCabinet"] is True

    # a second save keeps the ids stable
    again = client.patch(
        f"/api/ibc-applications/{app_id}",
        json={"cellLines": data["cellLines"], "isDraft": True},
        headers=ibc_setup["headers"],
    )
    assert again.json()["cellLines"][0]["id"] == cell_line_id


def test_team_members_round_trip_as_array_and_accept_legacy_string(client, ibc_setup):
    app_id = _create(client, ibc_setup)["id"]
    staff = create_scientist(client, ibc_setup["headers"], name="Priya Natarajan", pi=False)
    members = [{"id": "tmp-1", "scientistId": staff["id"], "role": "team_member"}]

    legacy = client.patch(
        f"/api/ibc-applications/{app_id}",
        json={"protocolTeamMembers": json.dumps(members), "isDraft": True},
        headers=ibc_setup["headers"],
    )
    assert legacy.status_code == 200, legacy.text
    stored = legacy.json()["protocolTeamMembers"]
    assert isinstance(stored, list)
    assert stored[0]["scientistId"] == staff["id"]
    assert not stored[0]["id"].startswith("tmp-")

    personnel = client.get(f"/api/ibc-applications/{app_id}/personnel", headers=ibc_setup["headers"]).json()
    assert personnel[0]["scientist"]["name"] == "Priya Natarajan"
    assert personnel[0]["role"] == "team_member"

    broken = client.patch(
        f"/api/ibc-applications/{app_id}",
        json={"protocolTeamMembers": "{not json", "isDraft": True},
        headers=ibc_setup["headers"],
    )
    assert broken.status_code == 422


def test_research_activity_links(client, ibc_setup):
    app_id = _create(client, ibc_setup)["id"]
    headers = ibc_setup["headers"]
    other = create_research_activity(client, headers, ibc_setup["pi"]["id"])

    linked = client.post(
        f"/api/ibc-applications/{app_id}/research-activities",
        json={"researchActivityId": other["id"]},
        headers=headers,
    )
    assert linked.status_code == 201
    duplicate = client.post(
        f"/api/ibc-applications/{app_id}/research-activities",
        json={"researchActivityId": other["id"]},
        headers=headers,
    )
    assert duplicate.status_code == 409

    listed = client.get(f"/api/ibc-applications/{app_id}/research-activities", headers=headers).json()
    assert {a["id"] for a in listed} == {ibc_setup["activity"]["id"], other["id"]}

    removed = client.delete(f"/api/ibc-applications/{app_id}/research-activities/{other['id']}", headers=headers)
    assert removed.status_code == 204
    listed = client.get(f"/api/ibc-applications/{app_id}/research-activities", headers=headers).json()
    assert [a["id"] for a in listed] == [ibc_setup["activity"]["id"]]


def test_list_filters_by_status(client, ibc_setup):
    draft_id = _create(client, ibc_setup)["id"]
    submitted_id = _create(client, ibc_setup, isDraft=False)["id"]
    listed = client.get("/api/ibc-applications", params={"status": "submitted"}, headers=ibc_setup["headers"]).json()
    ids = {item["id"] for item in listed}
    assert submitted_id in ids
    assert draft_id not in ids


def test_unknown_application_is_404(client, ibc_setup):
    resp = client.get(f"/api/ibc-applications/{uuid.uuid4()}", headers=ibc_setup["headers"])
    assert resp.status_code == 404
    assert resp.json()["detail"] == "IBC application not found"


def test_comments_and_reviewer_feedback(client, ibc_setup):
    app_id = _create(client, ibc_setup, isDraft=False)["id"]
    headers = ibc_setup["headers"]

    empty = client.post(f"/api/ibc-applications/{app_id}/comments", json={"comment": "   "}, headers=headers)
    assert empty.status_code == 400
    assert empty.json()["detail"] == "Comment is required"

    posted = client.post(
        f"/api/ibc-applications/{app_id}/comments",
        json={"comment": "Ready for committee review"},
        headers=headers,
    )
    assert posted.status_code == 201
    assert posted.json()["authorType"] == "pi"
    assert posted.json()["commentType"] == "submission_comment"

    denied = client.post(
        f"/api/ibc-applications/{app_id}/reviewer-feedback",
        json={"comments": "Looks fine", "recommendation": "approve"},
        headers=headers,
    )
    assert denied.status_code == 403

    reviewer = reviewer_headers(client)
    revisions = client.post(
        f"/api/ibc-applications/{app_id}/reviewer-feedback",
        json={"comments": "Describe waste handling", "recommendation": "minor_revisions"},
        headers=reviewer,
    )
    assert revisions.status_code == 200
    assert revisions.json() == {"message": "Reviewer feedback submitted successfully", "status": "revision_requested"}

    neutral = client.post(
        f"/api/ibc-applications/{app_id}/reviewer-feedback",
        json={"comments": "Still reading", "recommendation": "comment"},
        headers=reviewer,
    )
    assert neutral.json()["status"] == "under_review"

    approved = client.post(
        f"/api/ibc-applications/{app_id}/reviewer-feedback",
        json={"comments": "Approved", "recommendation": "approve"},
        headers=reviewer,
    )
    assert approved.json()["status"] == "approved"
    detail = client.get(f"/api/ibc-applications/{app_id}", headers=headers).json()
    assert detail["approvalDate"] is not None
    assert detail["underReviewDate"] is not None

    timeline = client.get(f"/api/ibc-applications/{app_id}/comments", headers=headers).json()
    types = [c["commentType"] for c in timeline]
    assert types.count("reviewer_feedback") == 3
    assert types.count("submission_comment") == 1
    assert [c["statusTo"] for c in timeline if c["commentType"] == "status_change"] == [
        "submitted",
        "revision_requested",
        "under_review",
        "approved",
    ]
