from app.news.errors import GovernorDenied, UpstreamTimeout, _humanize_seconds
from app.news.governor import RequestGovernor

from conftest import FakeClock


class TestRequestGovernor:
    """Test the per-client fixed request window."""

    def setup_method(self):
        self.clock = FakeClock()
        self.governor = RequestGovernor(max_requests=3, window_seconds=900, clock=self.clock)

    def test_admits_up_to_max(self):
        remaining = [self.governor.admit("1.2.3.4").remaining for _ in range(3)]
        assert remaining == [2, 1, 0]

    def test_denies_past_max_with_retry_after(self):
        for _ in range(3):
            self.governor.admit("1.2.3.4")

        denied = self.governor.admit("1.2.3.4")
        assert denied.allowed is False
        assert denied.retry_after_seconds == 900

        self.clock.advance(600)
        assert self.governor.admit("1.2.3.4").retry_after_seconds == 300

    def test_window_resets_after_it_lapses(self):
        for _ in range(4):
            self.governor.admit("1.2.3.4")

        self.clock.advance(900)
        admission = self.governor.admit("1.2.3.4")

        assert admission.allowed is True
        assert admission.remaining == 2

    def test_clients_are_counted_separately(self):
        for _ in range(3):
            self.governor.admit("1.1.1.1")

        assert self.governor.admit("1.1.1.1").allowed is False
        assert self.governor.admit("2.2.2.2").allowed is True

    def test_disabled_governor_always_admits(self):
        governor = RequestGovernor(max_requests=1, enabled=False, clock=self.clock)
        assert all(governor.admit("x").allowed for _ in range(10))
        assert governor.describe()["maxRequests"] == "unlimited"

    def test_sweep_forgets_lapsed_windows(self):
        self.governor.admit("1.1.1.1")
        self.clock.advance(500)
        self.governor.admit("2.2.2.2")
        self.clock.advance(400)

        assert self.governor.sweep() == 1
        assert self.governor.tracked_clients() == 1

    def test_describe(self):
        assert self.governor.describe() == {"enabled": True, "windowMs": 900000, "maxRequests": 3}


class TestErrorEnvelopes:
    def test_governor_denied_payload(self):
        exc = GovernorDenied(900)

        assert exc.status_code == 429
        assert exc.headers == {"Retry-After": "900"}
        assert exc.to_payload() == {
            "success": False,
            "message": "Too many news requests, please try again later.",
            "retryAfter": "15 minutes",
            "retryAfterSeconds": 900,
        }

    def test_timeout_payload(self):
        payload = UpstreamTimeout(detail="timeout after 8.0s").to_payload()

        assert payload["message"] == "Request timeout - please try again"
        assert payload["retryAfterSeconds"] == 30
        assert "timeout after" not in str(payload)

    def test_humanize_seconds(self):
        assert _humanize_seconds(1) == "1 second"
        assert _humanize_seconds(45) == "45 seconds"
        assert _humanize_seconds(60) == "1 minute"
        assert _humanize_seconds(61) == "2 minutes"
