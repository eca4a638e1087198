import uuid
from pathlib import Path

from conftest import LECTURER_A, LECTURER_B, STUDENT_S, STUDENT_T, admin_claims, advisor_claims, student_claims

API = "/api/v1/achievements"

HACKATHON = {
    "achievementType": "competition",
    "title": "Hackathon Winner",
    "description": "First place at the campus hackathon",
    "details": {"competitionName": "HackCampus", "competitionLevel": "national", "rank": 1},
    "tags": ["hackathon", "programming"],
    "points": 10,
}


def _create(client, headers, payload=None):
    response = client.post(API, json=payload or HACKATHON, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_requires_bearer_token(client):
    assert client.get(API).status_code == 401
    response = client.get(API, headers={"Authorization": "Bearer nonsense"})
    assert response.status_code == 401


def test_full_verification_flow(client, auth_headers):
    student = auth_headers(student_claims(STUDENT_S))
    advisor = auth_headers(advisor_claims(LECTURER_A))

    created = _create(client, student)
    assert created["status"] == "draft"
    assert created["studentId"] == str(STUDENT_S)
    assert "detailRef" in created

    achievement_id = created["id"]
    submitted = client.post(f"{API}/{achievement_id}/submit", headers=student)
    assert submitted.status_code == 200
    assert submitted.json()["submittedAt"] is not None

    verified = client.post(f"{API}/{achievement_id}/verify", headers=advisor)
    assert verified.status_code == 200
    body = verified.json()
    assert body["status"] == "verified"
    assert body["verifiedBy"] == str(LECTURER_A)

    again = client.post(f"{API}/{achievement_id}/verify", headers=advisor)
    assert again.status_code == 409

    history = client.get(f"{API}/{achievement_id}/history", headers=student).json()
    assert [event["status"] for event in history["events"]] == ["created", "submitted", "verified"]
    assert history["currentStatus"] == "verified"


def test_get_returns_detail_in_camel_case(client, auth_headers):
    student = auth_headers(student_claims(STUDENT_S))
    created = _create(client, student)

    response = client.get(f"{API}/{created['id']}", headers=student)

    assert response.status_code == 200
    detail = response.json()["detail"]
    assert detail["title"] == "Hackathon Winner"
    assert detail["achievementType"] == "competition"
    assert detail["details"]["competitionName"] == "HackCampus"
    assert detail["studentId"] == str(STUDENT_S)


def test_other_student_is_forbidden(client, auth_headers):
    created = _create(client, auth_headers(student_claims(STUDENT_S)))
    intruder = auth_headers(student_claims(STUDENT_T))

    assert client.get(f"{API}/{created['id']}", headers=intruder).status_code == 403
    assert client.post(f"{API}/{created['id']}/submit", headers=intruder).status_code == 403
    assert client.delete(f"{API}/{created['id']}", headers=intruder).status_code == 403


def test_unknown_achievement_is_404(client, auth_headers):
    student = auth_headers(student_claims(STUDENT_S))
    response = client.post(f"{API}/{uuid.uuid4()}/submit", headers=student)
    assert response.status_code == 404
    assert response.json()["detail"] == "Achievement not found"


def test_wrong_advisor_cannot_reject(client, auth_headers):
    student = auth_headers(student_claims(STUDENT_S))
    created = _create(client, student)
    client.post(f"{API}/{created['id']}/submit", headers=student)

    response = client.post(
        f"{API}/{created['id']}/reject",
        json={"rejectionNote": "Not convincing"},
        headers=auth_headers(advisor_claims(LECTURER_B)),
    )
    assert response.status_code == 403


def test_reject_requires_note(client, auth_headers):
    student = auth_headers(student_claims(STUDENT_S))
    advisor = auth_headers(advisor_claims(LECTURER_A))
    created = _create(client, student)
    client.post(f"{API}/{created['id']}/submit", headers=student)

    blank = client.post(f"{API}/{created['id']}/reject", json={"rejectionNote": "  "}, headers=advisor)
    assert blank.status_code == 422

    rejected = client.post(
        f"{API}/{created['id']}/reject", json={"rejectionNote": "Scan unreadable"}, headers=advisor
    )
    assert rejected.status_code == 200
    assert rejected.json()["rejectionNote"] == "Scan unreadable"


def test_invalid_payload_is_422(client, auth_headers):
    student = auth_headers(student_claims(STUDENT_S))
    payload = {**HACKATHON, "title": "   "}
    assert client.post(API, json=payload, headers=student).status_code == 422
    payload = {**HACKATHON, "achievementType": "sports"}
    assert client.post(API, json=payload, headers=student).status_code == 422


def test_advisor_cannot_create(client, auth_headers):
    response = client.post(API, json=HACKATHON, headers=auth_headers(advisor_claims(LECTURER_A)))
    assert response.status_code == 403


def test_update_and_delete_draft(client, auth_headers):
    student = auth_headers(student_claims(STUDENT_S))
    created = _create(client, student)

    updated = client.put(
        f"{API}/{created['id']}",
        json={**HACKATHON, "title": "Hackathon Runner-up", "points": 5},
        headers=student,
    )
    assert updated.status_code == 200
    detail = client.get(f"{API}/{created['id']}", headers=student).json()["detail"]
    assert detail["title"] == "Hackathon Runner-up"
    assert detail["points"] == 5

    deleted = client.delete(f"{API}/{created['id']}", headers=student)
    assert deleted.status_code == 200
    assert deleted.json()["status"] == "deleted"
    assert client.get(f"{API}/{created['id']}", headers=student).status_code == 404
    assert client.get(API, headers=student).json()["items"] == []


def test_listing_by_role(client, auth_headers):
    s_headers = auth_headers(student_claims(STUDENT_S))
    t_headers = auth_headers(student_claims(STUDENT_T))
    _create(client, s_headers)
    _create(client, t_headers, {**HACKATHON, "title": "Paper", "achievementType": "publication", "details": {}})

    own = client.get(API, headers=s_headers).json()
    assert [item["title"] for item in own["items"]] == ["Hackathon Winner"]
    assert own["items"][0]["achievementType"] == "competition"

    advisees = client.get(API, headers=auth_headers(advisor_claims(LECTURER_A))).json()
    assert {item["title"] for item in advisees["items"]} == {"Hackathon Winner", "Paper"}

    assert client.get(API, headers=auth_headers(advisor_claims(LECTURER_B))).json()["items"] == []

    admin = client.get(API, params={"page": 1, "pageSize": 1}, headers=auth_headers(admin_claims())).json()
    assert admin["total"] == 2
    assert admin["pageSize"] == 1
    assert admin["totalPages"] == 2
    assert len(admin["items"]) == 1


def test_admin_filters_by_status(client, auth_headers):
    student = auth_headers(student_claims(STUDENT_S))
    first = _create(client, student)
    _create(client, student)
    client.post(f"{API}/{first['id']}/submit", headers=student)

    response = client.get(API, params={"status": "submitted"}, headers=auth_headers(admin_claims()))

    assert response.status_code == 200
    assert [item["id"] for item in response.json()["items"]] == [first["id"]]


def test_upload_attachment(client, auth_headers, settings):
    student = auth_headers(student_claims(STUDENT_S))
    created = _create(client, student)

    response = client.post(
        f"{API}/{created['id']}/attachments",
        files={"file": ("certificate.pdf", b"%PDF-1.4 test", "application/pdf")},
        headers=student,
    )

    assert response.status_code == 201, response.text
    attachment = response.json()
    assert attachment["fileName"] == "certificate.pdf"
    assert attachment["fileType"] == "pdf"
    assert attachment["fileUrl"].startswith(f"/uploads/achievements/{created['id']}/")

    detail = client.get(f"{API}/{created['id']}", headers=student).json()["detail"]
    assert [item["fileName"] for item in detail["attachments"]] == ["certificate.pdf"]


def test_upload_too_large_is_422(client, auth_headers):
    student = auth_headers(student_claims(STUDENT_S))
    created = _create(client, student)

    response = client.post(
        f"{API}/{created['id']}/attachments",
        files={"file": ("huge.bin", b"x" * 4096, "application/octet-stream")},
        headers=student,
    )
    assert response.status_code == 422


def test_oversized_upload_stores_nothing(client, auth_headers, settings):
    student = auth_headers(student_claims(STUDENT_S))
    created = _create(client, student)

    response = client.post(
        f"{API}/{created['id']}/attachments",
        files={"file": ("huge.bin", b"x" * (settings.max_upload_bytes * 8), "application/octet-stream")},
        headers=student,
    )

    assert response.status_code == 422
    assert not (Path(settings.upload_dir) / "achievements" / created["id"]).exists()
    detail = client.get(f"{API}/{created['id']}", headers=student).json()["detail"]
    assert detail["attachments"] == []
