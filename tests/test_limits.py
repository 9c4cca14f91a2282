"""Tests for the find-pass rate limit and the scan payload cap."""

from fastapi.testclient import TestClient

from epass.core.ratelimit import SlidingWindowLimiter
from epass.models import Attendee


class FakeClock:
    def __init__(self):
        self.now = 500.0

    def __call__(self) -> float:
        return self.now


class TestSlidingWindowLimiter:
    """Tests for SlidingWindowLimiter."""

    def test_allows_up_to_limit(self):
        """Test requests beyond the limit in one window are refused."""
        limiter = SlidingWindowLimiter(3, 60, clock=FakeClock())
        assert [limiter.hit("10.0.0.1") for _ in range(4)] == [True, True, True, False]

    def test_keys_are_independent(self):
        """Test one client hitting the limit does not block another."""
        limiter = SlidingWindowLimiter(1, 60, clock=FakeClock())
        assert limiter.hit("10.0.0.1") is True
        assert limiter.hit("10.0.0.1") is False
        assert limiter.hit("10.0.0.2") is True

    def test_window_slides(self):
        """Test old requests stop counting once they leave the window."""
        clock = FakeClock()
        limiter = SlidingWindowLimiter(2, 60, clock=clock)
        limiter.hit("10.0.0.1")
        clock.now += 30
        limiter.hit("10.0.0.1")
        assert limiter.hit("10.0.0.1") is False

        clock.now += 31
        assert limiter.hit("10.0.0.1") is True
        assert limiter.hit("10.0.0.1") is False

    def test_refused_requests_do_not_extend_the_ban(self):
        """Test refused requests are not recorded."""
        clock = FakeClock()
        limiter = SlidingWindowLimiter(1, 60, clock=clock)
        limiter.hit("10.0.0.1")
        clock.now += 59
        assert limiter.hit("10.0.0.1") is False
        clock.now += 2
        assert limiter.hit("10.0.0.1") is True

    def test_reset(self):
        limiter = SlidingWindowLimiter(1, 60, clock=FakeClock())
        limiter.hit("10.0.0.1")
        limiter.reset()
        assert limiter.hit("10.0.0.1") is True


class TestFindPassRateLimit:
    """Tests for the per-client limit on POST /api/find-pass."""

    def test_eleventh_lookup_is_refused(self, client: TestClient, sample_attendee: Attendee):
        """Test ten lookups a minute are served and the next gets 429."""
        for _ in range(10):
            response = client.post("/api/find-pass", json={"phone": "9876543210"})
            assert response.status_code == 200

        response = client.post("/api/find-pass", json={"phone": "9876543210"})
        assert response.status_code == 429
        assert response.json() == {
            "success": False,
            "message": "You have made too many requests. Please try again in a minute.",
        }

    def test_misses_count_too(self, client: TestClient):
        """Test unsuccessful lookups use up the allowance."""
        for _ in range(10):
            assert client.post("/api/find-pass", json={"email": "nobody@example.com"}).status_code == 404
        assert client.post("/api/find-pass", json={"email": "nobody@example.com"}).status_code == 429

    def test_disabled_with_zero_limit(self, client: TestClient, test_settings):
        """Test a limit of 0 turns the check off."""
        test_settings.find_pass_rate_limit = 0
        for _ in range(12):
            assert client.post("/api/find-pass", json={"email": "nobody@example.com"}).status_code == 404

    def test_other_routes_unaffected(self, client: TestClient):
        """Test the limit applies to find-pass only."""
        for _ in range(10):
            client.post("/api/find-pass", json={"email": "nobody@example.com"})
        assert client.get("/api/public-status").status_code == 200


class TestScanPayloadLimit:
    """Tests for the 1 KB body cap on verify and check-in."""

    def test_oversized_verify(self, client: TestClient):
        """Test a verify body over 1 KB is rejected with 413."""
        response = client.post("/api/verify", json={"registrationId": "UP25-" + "A" * 2000})
        assert response.status_code == 413
        assert response.json() == {"success": False, "message": "Payload is too large."}
        assert "no-store" in response.headers["cache-control"]

    def test_oversized_check_in(
        self, client: TestClient, staff_headers: dict, sample_attendee: Attendee
    ):
        """Test a check-in body over 1 KB is rejected and nothing is written."""
        response = client.post(
            "/api/check-in",
            json={"registrationId": sample_attendee.registration_id, "notes": "x" * 2000},
            headers=staff_headers,
        )
        assert response.status_code == 413

        verify = client.post("/api/verify", json={"registrationId": sample_attendee.registration_id})
        assert verify.json()["data"]["attendee"]["isCheckedIn"] is False

    def test_small_body_accepted(
        self, client: TestClient, staff_headers: dict, sample_attendee: Attendee
    ):
        """Test an ordinary scan payload passes the cap."""
        response = client.post(
            "/api/check-in",
            json={"registrationId": sample_attendee.registration_id, "deviceInfo": {"model": "Pixel"}},
            headers=staff_headers,
        )
        assert response.status_code == 200

    def test_register_not_capped(self, client: TestClient):
        """Test registration, which carries an image, is not held to the scan cap."""
        response = client.post(
            "/api/register",
            json={
                "fullName": "Meera Singh",
                "phone": "9998887770",
                "email": "a@x.com",
                "city": "Varanasi",
                "state": "Uttar Pradesh",
                "profileImage": "data:image/png;base64," + "A" * 4000,
            },
        )
        assert response.status_code == 200
