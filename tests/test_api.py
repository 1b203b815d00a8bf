"""
HTTP API tests
AsyncClient against the app with the database dependency overridden
"""
import pytest

from donation_ledger.models import utcnow

USER = {"x-user-id": "alice", "x-user-email": "alice@example.com"}
OTHER_USER = {"x-user-id": "bob"}
ADMIN = {"x-user-id": "admin-1", "x-user-role": "admin"}


async def post_donation(client, headers=None, **body):
    payload = {"associationId": "assoc-1", "amount": 10}
    payload.update(body)
    return await client.post("/donations", json=payload, headers=headers or {})


# ============================================================================
# HEALTH CHECK TESTS
# ============================================================================

class TestHealthCheck:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_readiness(self, client):
        response = await client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["database"] == "connected"
        assert data["cache"] == "not_initialized"
        assert data["circuit_breaker"]["state"] == "closed"

    @pytest.mark.asyncio
    async def test_metrics(self, client):
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text


# ============================================================================
# DONATION ENDPOINT TESTS
# ============================================================================

class TestDonationEndpoints:

    @pytest.mark.asyncio
    async def test_record_donation_camel_case(self, client):
        response = await post_donation(client, USER, amount=90)

        assert response.status_code == 201
        data = response.json()
        assert data["donationId"]
        assert data["unlockedBadges"] == [{
            "id": "first_donation",
            "displayName": "First donation",
            "imageRef": "badges/first_donation.png",
        }]

    @pytest.mark.asyncio
    async def test_second_donation_unlocks_cumulated_100(self, client):
        await post_donation(client, USER, amount=90)

        response = await post_donation(client, USER, amount=15)

        assert [b["id"] for b in response.json()["unlockedBadges"]] == ["cumulated_100"]

    @pytest.mark.asyncio
    async def test_anonymous_guest_donation(self, client):
        response = await post_donation(client, amount=50, anonymous=True)

        assert response.status_code == 201
        assert response.json()["unlockedBadges"] == []

    @pytest.mark.asyncio
    async def test_guest_without_contact_rejected(self, client):
        response = await post_donation(client, amount=50)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_recurrent_guest_rejected(self, client):
        response = await post_donation(client, amount=50, type="recurrent", anonymous=True)

        assert response.status_code == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"amount": 0},
        {"amount": -3},
        {"amount": 12.5},
        {"associationId": ""},
    ])
    async def test_invalid_payload(self, client, body):
        response = await post_donation(client, USER, **body)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_my_donations(self, client):
        await post_donation(client, USER, amount=5)
        await post_donation(client, OTHER_USER, amount=7)

        response = await client.get("/donations/me", headers=USER)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["donations"][0]["associationId"] == "assoc-1"
        assert data["donations"][0]["email"] == "alice@example.com"

    @pytest.mark.asyncio
    async def test_my_donations_requires_identity(self, client):
        response = await client.get("/donations/me")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_cancel_recurrent_donation(self, client):
        created = await post_donation(client, USER, amount=20, type="recurrent")
        donation_id = created.json()["donationId"]

        response = await client.patch(f"/donations/{donation_id}/status",
                                      json={"status": "cancelled"}, headers=USER)

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_update_foreign_donation_not_found(self, client):
        created = await post_donation(client, USER, amount=20, type="recurrent")
        donation_id = created.json()["donationId"]

        response = await client.patch(f"/donations/{donation_id}/status",
                                      json={"status": "cancelled"}, headers=OTHER_USER)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_monthly_receipt_on_single_rejected(self, client):
        created = await post_donation(client, USER, amount=20)
        donation_id = created.json()["donationId"]

        response = await client.patch(f"/donations/{donation_id}/receipt",
                                      json={"monthlyReceipt": True}, headers=USER)

        assert response.status_code == 400


# ============================================================================
# BADGE ENDPOINT TESTS
# ============================================================================

class TestBadgeEndpoints:

    @pytest.mark.asyncio
    async def test_catalog(self, client):
        response = await client.get("/badges")

        assert response.status_code == 200
        ids = [b["id"] for b in response.json()["badges"]]
        assert ids == ["first_donation", "cumulated_100", "cumulated_1000", "loyalty", "completer"]

    @pytest.mark.asyncio
    async def test_my_badges(self, client):
        await post_donation(client, USER, amount=150)

        response = await client.get("/badges/me", headers=USER)

        data = response.json()
        assert data["userId"] == "alice"
        assert [b["id"] for b in data["badges"]] == ["first_donation", "cumulated_100"]


# ============================================================================
# GOAL ENDPOINT TESTS
# ============================================================================

class TestGoalEndpoints:

    @pytest.mark.asyncio
    async def test_upsert_requires_admin(self, client):
        body = {"targetAmount": 500, "title": "Winter meals"}

        assert (await client.put("/associations/assoc-1/goal", json=body)).status_code == 401
        assert (await client.put("/associations/assoc-1/goal", json=body, headers=USER)).status_code == 403

    @pytest.mark.asyncio
    async def test_goal_not_found(self, client):
        assert (await client.get("/associations/assoc-1/goal")).status_code == 404
        assert (await client.get("/associations/assoc-1/goal/progress")).status_code == 404

    @pytest.mark.asyncio
    async def test_goal_progress_and_completion(self, client):
        created = await client.put("/associations/assoc-1/goal",
                                   json={"targetAmount": 500, "title": "Winter meals"}, headers=ADMIN)
        assert created.status_code == 200
        assert created.json()["completed"] is False

        await post_donation(client, USER, amount=250)
        progress = (await client.get("/associations/assoc-1/goal/progress")).json()
        assert progress["collectedAmount"] == 250
        assert progress["percentage"] == 50.0
        assert progress["completed"] is False

        response = await post_donation(client, OTHER_USER, amount=600)
        assert "completer" in [b["id"] for b in response.json()["unlockedBadges"]]

        progress = (await client.get("/associations/assoc-1/goal/progress")).json()
        assert progress["collectedAmount"] == 850
        assert progress["percentage"] == 100.0
        assert progress["completed"] is True
        assert progress["completedBy"] == "bob"

    @pytest.mark.asyncio
    async def test_delete_goal(self, client):
        await client.put("/associations/assoc-1/goal",
                         json={"targetAmount": 500, "title": "Winter meals"}, headers=ADMIN)

        assert (await client.delete("/associations/assoc-1/goal", headers=ADMIN)).status_code == 204
        assert (await client.delete("/associations/assoc-1/goal", headers=ADMIN)).status_code == 404

    @pytest.mark.asyncio
    async def test_association_summary(self, client):
        await post_donation(client, USER, amount=30)
        await post_donation(client, USER, amount=20, type="recurrent")
        await post_donation(client, OTHER_USER, amount=5, associationId="assoc-2")

        assert (await client.get("/associations/assoc-1/summary", headers=USER)).status_code == 403

        response = await client.get("/associations/assoc-1/summary", headers=ADMIN)

        data = response.json()
        assert data["totalAmount"] == 50
        assert data["donationCount"] == 2
        assert data["activeRecurrentCount"] == 1
        assert data["totalsByYear"] == {str(utcnow().year): 50}
