import pytest
from httpx import AsyncClient, ASGITransport

from parkpass.infrastructure.persistence.database import get_async_db
from parkpass.main_api import create_app


@pytest.fixture
async def client(test_db):
    """HTTP client talking to the app, backed by the per-test database."""
    app = create_app(with_lifespan=False)

    async def override_get_async_db():
        async with test_db() as session:
            yield session

    app.dependency_overrides[get_async_db] = override_get_async_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client


async def create_draft(client, spot, vehicle, slots=("09:00", "10:00")):
    response = await client.post("/api/parking/drafts", json={
        "user_id": vehicle.user_id,
        "spot_id": spot.id,
        "date": "2030-01-07",
        "slot_starts": list(slots),
        "vehicle_id": vehicle.id,
    })
    assert response.status_code == 201, response.text
    return response.json()


async def create_booking(client, spot, vehicle, slots=("09:00", "10:00")):
    draft = await create_draft(client, spot, vehicle, slots)
    response = await client.post("/api/parking/bookings", json={"draft_id": draft["id"], "user_id": vehicle.user_id})
    assert response.status_code == 201, response.text
    return response.json()


class TestBookingApi:
    async def test_root(self, client):
        response = await client.get("/")
        assert response.status_code == 200

    async def test_availability(self, client, sample_spot):
        response = await client.get(f"/api/parking/spots/{sample_spot.id}/availability", params={"date": "2030-01-07"})
        assert response.status_code == 200
        data = response.json()
        assert data["spot_id"] == sample_spot.id
        assert len(data["slots"]) == 12
        assert data["slots"][0]["start"] == "08:00"

    async def test_availability_unknown_spot(self, client):
        response = await client.get("/api/parking/spots/missing/availability", params={"date": "2030-01-07"})
        assert response.status_code == 404
        assert response.json() == {"error": "not_found", "detail": "Parking spot missing not found", "retryable": False}

    async def test_draft_then_booking(self, client, sample_spot, sample_vehicle):
        booking = await create_booking(client, sample_spot, sample_vehicle)
        assert booking["status"] == "pending"
        assert booking["total_cost"] == 40
        assert len(booking["pin"]) == 4

        response = await client.get(f"/api/parking/bookings/{booking['id']}", params={"user_id": sample_vehicle.user_id})
        assert response.status_code == 200
        assert response.json()["qr_code"] == booking["qr_code"]

    async def test_get_draft(self, client, sample_spot, sample_vehicle):
        draft = await create_draft(client, sample_spot, sample_vehicle)
        response = await client.get(f"/api/parking/drafts/{draft['id']}", params={"user_id": sample_vehicle.user_id})
        assert response.status_code == 200
        assert response.json()["slot_starts"] == ["09:00", "10:00"]

    async def test_non_consecutive_draft(self, client, sample_spot, sample_vehicle):
        response = await client.post("/api/parking/drafts", json={
            "user_id": sample_vehicle.user_id,
            "spot_id": sample_spot.id,
            "date": "2030-01-07",
            "slot_starts": ["09:00", "11:00"],
        })
        assert response.status_code == 422
        assert response.json()["error"] == "invalid_selection"

    async def test_overlap_is_a_conflict(self, client, sample_spot, sample_vehicle):
        await create_booking(client, sample_spot, sample_vehicle)
        response = await client.post("/api/parking/drafts", json={
            "user_id": sample_vehicle.user_id,
            "spot_id": sample_spot.id,
            "date": "2030-01-07",
            "slot_starts": ["10:00"],
        })
        assert response.status_code == 409
        assert response.json()["retryable"] is True

    async def test_cancel(self, client, sample_spot, sample_vehicle):
        booking = await create_booking(client, sample_spot, sample_vehicle)
        response = await client.post(f"/api/parking/bookings/{booking['id']}/cancel", json={"actor_id": "stranger"})
        assert response.status_code == 403

        response = await client.post(
            f"/api/parking/bookings/{booking['id']}/cancel", json={"actor_id": sample_vehicle.user_id}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        response = await client.post(
            f"/api/parking/bookings/{booking['id']}/cancel", json={"actor_id": sample_vehicle.user_id}
        )
        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"

    async def test_qr_payload_and_png(self, client, sample_spot, sample_vehicle):
        booking = await create_booking(client, sample_spot, sample_vehicle)
        params = {"user_id": sample_vehicle.user_id}

        response = await client.get(f"/api/parking/bookings/{booking['id']}/qr", params=params)
        assert response.status_code == 200
        assert booking["id"] in response.json()["payload"]

        response = await client.get(f"/api/parking/bookings/{booking['id']}/qr.png", params=params)
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content.startswith(b"\x89PNG")


class TestPaymentAndGateApi:
    async def test_full_flow(self, client, sample_spot, sample_vehicle):
        booking = await create_booking(client, sample_spot, sample_vehicle)

        response = await client.post(f"/api/parking/bookings/{booking['id']}/payment-slips", json={
            "user_id": sample_vehicle.user_id,
            "image_url": "slips/1.png",
            "ocr_text": "Transfer of 38.00 received",
        })
        assert response.status_code == 201
        upload = response.json()
        assert upload["verification"]["verified"] is False
        assert upload["slip"]["status"] == "pending"

        response = await client.get("/api/parking/payment-slips/pending", params={"operator_id": sample_spot.owner_id})
        assert [s["id"] for s in response.json()] == [upload["slip"]["id"]]

        response = await client.post(
            f"/api/parking/payment-slips/{upload['slip']['id']}/decision",
            json={"operator_id": sample_spot.owner_id, "approved": True},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "verified"

        qr = (await client.get(
            f"/api/parking/bookings/{booking['id']}/qr", params={"user_id": sample_vehicle.user_id}
        )).json()["payload"]

        response = await client.post("/api/parking/scan", json={"code": qr, "operator_id": sample_spot.owner_id})
        assert response.status_code == 200
        assert response.json()["action"] == "entry"
        assert response.json()["available_slots"] == 4

        response = await client.post("/api/parking/scan", json={"code": booking["pin"], "operator_id": sample_spot.owner_id})
        assert response.json()["action"] == "exit"
        assert response.json()["booking"]["status"] == "completed"
        assert response.json()["available_slots"] == 5

    async def test_verify_endpoint(self, client, sample_spot, sample_vehicle):
        booking = await create_booking(client, sample_spot, sample_vehicle)
        upload = (await client.post(f"/api/parking/bookings/{booking['id']}/payment-slips", json={
            "user_id": sample_vehicle.user_id,
            "image_url": "slips/1.png",
        })).json()
        assert upload["verification"]["confidence"] == 0.0

        response = await client.post("/api/parking/payment-slips/verify", json={
            "paymentSlipId": upload["slip"]["id"],
            "bookingId": booking["id"],
        })
        assert response.status_code == 200
        assert set(response.json()) == {"verified", "confidence", "notes"}

    async def test_scan_unverified_booking(self, client, sample_spot, sample_vehicle):
        booking = await create_booking(client, sample_spot, sample_vehicle)
        response = await client.post("/api/parking/scan", json={"code": booking["pin"], "operator_id": sample_spot.owner_id})
        assert response.status_code == 403
        assert response.json()["error"] == "access_denied"

    async def test_scan_requires_code(self, client):
        response = await client.post("/api/parking/scan", json={"code": "", "operator_id": "owner-1"})
        assert response.status_code == 422


class TestOwnerApi:
    async def test_owner_spots(self, client, sample_spot):
        response = await client.get(f"/api/parking/owners/{sample_spot.owner_id}/spots")
        assert response.status_code == 200
        spots = response.json()
        assert [s["id"] for s in spots] == [sample_spot.id]
        assert spots[0]["price"] == 20
        assert spots[0]["daily_price"] is None

        assert (await client.get("/api/parking/owners/nobody/spots")).json() == []

    async def test_close_and_reopen_time(self, client, sample_spot):
        response = await client.post(f"/api/parking/spots/{sample_spot.id}/blocks", json={
            "operator_id": sample_spot.owner_id,
            "start_time": "2030-01-07T12:00:00",
            "end_time": "2030-01-07T14:00:00",
            "status": "maintenance",
            "reason": "Resurfacing",
        })
        assert response.status_code == 201, response.text
        block = response.json()
        assert block["status"] == "maintenance"
        assert block["created_by"] == sample_spot.owner_id

        listed = await client.get(f"/api/parking/spots/{sample_spot.id}/blocks")
        assert [b["id"] for b in listed.json()] == [block["id"]]

        slots = (await client.get(
            f"/api/parking/spots/{sample_spot.id}/availability", params={"date": "2030-01-07"}
        )).json()["slots"]
        assert [s["start"] for s in slots if s["blocked"]] == ["12:00", "13:00"]
        assert all(s["status"] == "unavailable" for s in slots if s["blocked"])

        response = await client.delete(
            f"/api/parking/spots/{sample_spot.id}/blocks/{block['id']}", params={"operator_id": sample_spot.owner_id}
        )
        assert response.status_code == 204
        assert (await client.get(f"/api/parking/spots/{sample_spot.id}/blocks")).json() == []

    async def test_only_the_owner_closes_time(self, client, sample_spot):
        response = await client.post(f"/api/parking/spots/{sample_spot.id}/blocks", json={
            "operator_id": "driver-1",
            "start_time": "2030-01-07T12:00:00",
            "end_time": "2030-01-07T14:00:00",
        })
        assert response.status_code == 403
        assert response.json()["error"] == "access_denied"

    async def test_remove_unknown_block(self, client, sample_spot):
        response = await client.delete(
            f"/api/parking/spots/{sample_spot.id}/blocks/missing", params={"operator_id": sample_spot.owner_id}
        )
        assert response.status_code == 404


class TestDayBookingApi:
    async def test_daily_booking(self, client, sample_spot, sample_vehicle):
        response = await client.post("/api/parking/bookings/daily", json={
            "user_id": sample_vehicle.user_id,
            "spot_id": sample_spot.id,
            "vehicle_id": sample_vehicle.id,
            "days": ["2030-01-08", "2030-01-07"],
        })
        assert response.status_code == 201, response.text
        booking = response.json()
        assert booking["booking_type"] == "daily"
        assert booking["total_cost"] == 960
        assert booking["status"] == "pending"

        days = await client.get(
            f"/api/parking/spots/{sample_spot.id}/days", params={"start": "2030-01-06", "end": "2030-01-09"}
        )
        assert days.status_code == 200
        assert [d["status"] for d in days.json()["days"]] == ["available", "booked", "booked", "available"]

    async def test_daily_booking_over_hourly_booking(self, client, sample_spot, sample_vehicle):
        await create_booking(client, sample_spot, sample_vehicle)
        response = await client.post("/api/parking/bookings/daily", json={
            "user_id": sample_vehicle.user_id,
            "spot_id": sample_spot.id,
            "vehicle_id": sample_vehicle.id,
            "days": ["2030-01-07"],
        })
        assert response.status_code == 409
        assert response.json()["retryable"] is True

    async def test_gapped_days_are_rejected(self, client, sample_spot, sample_vehicle):
        response = await client.post("/api/parking/bookings/daily", json={
            "user_id": sample_vehicle.user_id,
            "spot_id": sample_spot.id,
            "vehicle_id": sample_vehicle.id,
            "days": ["2030-01-07", "2030-01-09"],
        })
        assert response.status_code == 422
        assert "consecutive" in response.json()["detail"]

    async def test_monthly_booking(self, client, sample_spot, sample_vehicle):
        response = await client.post("/api/parking/bookings/monthly", json={
            "user_id": sample_vehicle.user_id,
            "spot_id": sample_spot.id,
            "vehicle_id": sample_vehicle.id,
            "start_date": "2030-02-01",
            "months": 2,
            "payment_method": "bank_transfer",
        })
        assert response.status_code == 201, response.text
        booking = response.json()
        assert booking["booking_type"] == "monthly"
        assert booking["total_cost"] == 28800
        assert booking["payment_method"] == "bank_transfer"

    async def test_month_count_is_validated(self, client, sample_spot, sample_vehicle):
        response = await client.post("/api/parking/bookings/monthly", json={
            "user_id": sample_vehicle.user_id,
            "spot_id": sample_spot.id,
            "vehicle_id": sample_vehicle.id,
            "start_date": "2030-02-01",
            "months": 13,
        })
        assert response.status_code == 422

    async def test_day_range_must_be_ordered(self, client, sample_spot):
        response = await client.get(
            f"/api/parking/spots/{sample_spot.id}/days", params={"start": "2030-01-09", "end": "2030-01-06"}
        )
        assert response.status_code == 422
        assert response.json()["error"] == "invalid_selection"
