from .conftest import admin_headers, client, register, TestingSessionLocal
import pyotp

from compliance_portal import audit, models, rbac


def test_register_and_login(client):
    resp = client.post("/api/auth/register", json={"email": "applicant@example.com", "password": "secret"})
    assert resp.status_code == 200
    token = resp.json()["access_token"]
    assert token
    resp2 = client.post("/api/auth/login", json={"email": "applicant@example.com", "password": "secret"})
    assert resp2.status_code == 200
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {resp2.json()['access_token']}"})
    assert me.status_code == 200
    assert me.json()["role"] == "researcher"

    db = TestingSessionLocal()
    try:
        user = db.query(models.User).filter(models.User.email == "applicant@example.com").one()
        actions = [row.action for row in audit.list_for_target(db, "user", user.id)]
    finally:
        db.close()
    assert actions == ["register", "login"]


def test_duplicate_registration_and_bad_password(client):
    payload = {"email": "dup@example.com", "password": "secret"}
    assert client.post("/api/auth/register", json=payload).status_code == 200
    again = client.post("/api/auth/register", json=payload)
    assert again.status_code == 400
    assert again.json()["detail"] == "Email already registered"
    wrong = client.post("/api/auth/login", json={"email": "dup@example.com", "password": "nope"})
    assert wrong.status_code == 401


def test_api_requires_token(client):
    assert client.get("/api/ibc-applications").status_code == 401
    bad = client.get("/api/ibc-applications", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401


def test_two_factor_flow(client):
    resp = client.post("/api/auth/register", json={"email": "2fa@example.com", "password": "secret"})
    token = resp.json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}
    enable = client.post("/api/auth/enable-2fa", headers=headers)
    assert enable.status_code == 200
    secret = enable.json()["secret"]
    code = pyotp.TOTP(secret).now()
    verify = client.post("/api/auth/verify-2fa", json={"code": code}, headers=headers)
    assert verify.status_code == 200
    # login now requires otp
    fail = client.post("/api/auth/login", json={"email": "2fa@example.com", "password": "secret"})
    assert fail.status_code == 401
    success = client.post("/api/auth/login", json={"email": "2fa@example.com", "password": "secret", "otp_code": pyotp.TOTP(secret).now()})
    assert success.status_code == 200


def test_metrics_endpoint_is_public(client):
    client.get("/api/principal-investigators")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert b"request_count" in resp.content


def test_register_collects_applicant_role(client):
    resp = client.post(
        "/api/auth/register",
        json={"email": "pi@example.com", "password": "secret", "role": "principal_investigator"},
    )
    assert resp.status_code == 200
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {resp.json()['access_token']}"})
    assert me.json()["role"] == "principal_investigator"

    db = TestingSessionLocal()
    try:
        user = db.query(models.User).filter(models.User.email == "pi@example.com").one()
        details = audit.list_for_target(db, "user", user.id)[0].details
    finally:
        db.close()
    assert details == {"role": "principal_investigator"}


def test_reviewer_role_cannot_be_self_assigned(client):
    for role in ("reviewer", "office", "admin"):
        resp = client.post(
            "/api/auth/register",
            json={"email": f"self-{role}@example.com", "password": "secret", "role": role},
        )
        assert resp.status_code == 422


def test_admin_assigns_reviewer_role(client):
    token, email = register(client)
    headers = {"Authorization": f"Bearer {token}"}
    user_id = client.get("/api/auth/me", headers=headers).json()["id"]

    forbidden = client.put(f"/api/auth/users/{user_id}/role", json={"role": "reviewer"}, headers=headers)
    assert forbidden.status_code == 403
    assert forbidden.json()["detail"] == "Not authorized"

    admin = admin_headers(client)
    resp = client.put(f"/api/auth/users/{user_id}/role", json={"role": "reviewer"}, headers=admin)
    assert resp.status_code == 200
    assert resp.json()["role"] == "reviewer"
    assert client.get("/api/auth/me", headers=headers).json()["role"] == "reviewer"

    bad = client.put(f"/api/auth/users/{user_id}/role", json={"role": "superuser"}, headers=admin)
    assert bad.status_code == 422
    missing = client.put(
        "/api/auth/users/00000000-0000-0000-0000-000000000000/role", json={"role": "office"}, headers=admin
    )
    assert missing.status_code == 404

    db = TestingSessionLocal()
    try:
        user = db.query(models.User).filter(models.User.email == email).one()
        assert rbac.is_reviewer(user)
        actions = [row.action for row in audit.list_for_target(db, "user", user.id)]
    finally:
        db.close()
    assert "user.role_assign" in actions
