import uuid

from locust import HttpUser, task, between


class ApplicantUser(HttpUser):
    wait_time = between(1, 3)

    def on_start(self):
        payload = {"email": "load@portal.example", "password": "password"}
        r = self.client.post("/api/auth/register", json=payload)
        if r.status_code != 200:
            r = self.client.post("/api/auth/login", json=payload)
        token = r.json().get("access_token")
        self.headers = {"Authorization": f"Bearer {token}"}
        self.pi_id = None
        self.activity_ids = []
        pis = self.client.get("/api/principal-investigators", headers=self.headers).json()
        if pis:
            self.pi_id = pis[0]["id"]
            activities = self.client.get(
                "/api/research-activities",
                params={"principalInvestigatorId": self.pi_id},
                headers=self.headers,
            ).json()
            self.activity_ids = [a["id"] for a in activities[:1]]

    @task(3)
    def list_applications(self):
        self.client.get("/api/ibc-applications", headers=self.headers)
        self.client.get("/api/pmo-applications", headers=self.headers)
        self.client.get("/api/change-requests", headers=self.headers)

    @task(1)
    def save_draft(self):
        if not self.pi_id or not self.activity_ids:
            return
        data = {
            "title": f"Load draft {uuid.uuid4().hex[:6]}",
            "principalInvestigatorId": self.pi_id,
            "researchActivityIds": self.activity_ids,
            "isDraft": True,
        }
        self.client.post("/api/ibc-applications", json=data, headers=self.headers)
