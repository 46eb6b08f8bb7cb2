"""
Unit tests for internet liveness checks.
Tests the HTTP 204 probe and the ICMP probe with requests and ping3 mocked.
"""

from unittest.mock import Mock, patch

import pytest
import requests

from agent.liveness import DEFAULT_PROBE_URL, InternetLivenessChecker
from agent.telemetry import TelemetryUnavailable


class TestHttpProbe:
    """Test the HTTP 204 reachability probe."""

    def test_204_means_internet(self):
        checker = InternetLivenessChecker(method="http", timeout=3)

        with patch("requests.get") as mock_get:
            mock_get.return_value = Mock(status_code=204)

            assert checker.has_internet_access() is True
            mock_get.assert_called_once_with(DEFAULT_PROBE_URL, timeout=3, allow_redirects=False)

    def test_captive_portal_redirect_means_no_internet(self):
        checker = InternetLivenessChecker()

        with patch("requests.get", return_value=Mock(status_code=302)):
            assert checker.has_internet_access() is False

    def test_login_page_means_no_internet(self):
        checker = InternetLivenessChecker()

        with patch("requests.get", return_value=Mock(status_code=200)):
            assert checker.has_internet_access() is False

    def test_timeout(self):
        checker = InternetLivenessChecker()

        with patch("requests.get", side_effect=requests.exceptions.Timeout()):
            assert checker.has_internet_access() is False

    def test_connection_error(self):
        checker = InternetLivenessChecker()

        with patch("requests.get", side_effect=requests.exceptions.ConnectionError("unreachable")):
            assert checker.has_internet_access() is False

    def test_other_request_error(self):
        checker = InternetLivenessChecker()

        with patch("requests.get", side_effect=requests.exceptions.TooManyRedirects()):
            assert checker.has_internet_access() is False


class TestIcmpProbe:
    """Test the ICMP echo probe."""

    def test_reply_means_internet(self):
        checker = InternetLivenessChecker(method="icmp", host="1.1.1.1", timeout=2)

        with patch("ping3.ping", return_value=0.012) as mock_ping:
            assert checker.has_internet_access() is True
            mock_ping.assert_called_once_with("1.1.1.1", timeout=2)

    def test_timeout_means_no_internet(self):
        checker = InternetLivenessChecker(method="icmp")

        with patch("ping3.ping", return_value=None):
            assert checker.has_internet_access() is False

    def test_error_means_no_internet(self):
        checker = InternetLivenessChecker(method="icmp")

        with patch("ping3.ping", return_value=False):
            assert checker.has_internet_access() is False

    def test_permission_denied_is_unavailable(self):
        checker = InternetLivenessChecker(method="icmp")

        with patch("ping3.ping", side_effect=PermissionError("raw socket")):
            with pytest.raises(TelemetryUnavailable):
                checker.has_internet_access()


def test_unknown_method_rejected():
    with pytest.raises(ValueError):
        InternetLivenessChecker(method="dns")
