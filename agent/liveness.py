"""
Internet liveness checks for Agent.

This module answers one question for the evaluation loop: does the current
link actually reach the internet? A captive portal or dead upstream shows
up here as False even though the radio reports a strong signal.
"""

import logging
from abc import ABC, abstractmethod

import ping3
import requests

from agent.telemetry import TelemetryUnavailable


logger = logging.getLogger(__name__)


DEFAULT_PROBE_URL = "http://connectivitycheck.gstatic.com/generate_204"
DEFAULT_PROBE_HOST = "1.1.1.1"


class LivenessChecker(ABC):
    """Reachability interface consumed by the evaluation loop."""

    @abstractmethod
    def has_internet_access(self) -> bool:
        """Whether the internet is reachable over the current link."""


class InternetLivenessChecker(LivenessChecker):
    """
    Reachability probe using an HTTP 204 endpoint or ICMP echo.

    The HTTP method is the default because captive portals answer it with a
    redirect or a login page instead of an empty 204. The ICMP method is for
    networks that block plain HTTP probes.

    Attributes:
        method: "http" or "icmp"
        url: Endpoint expected to answer 204 No Content
        host: Target for ICMP echo
        timeout: Probe timeout in seconds
    """

    def __init__(
        self,
        method: str = "http",
        url: str = DEFAULT_PROBE_URL,
        host: str = DEFAULT_PROBE_HOST,
        timeout: float = 3
    ):
        if method not in ("http", "icmp"):
            raise ValueError(f"Unknown liveness method: {method}")
        self.method = method
        self.url = url
        self.host = host
        self.timeout = timeout

        logger.info(f"InternetLivenessChecker initialized: method={method}, "
                    f"target={url if method == 'http' else host}, timeout={timeout}s")

    def has_internet_access(self) -> bool:
        if self.method == "icmp":
            return self._probe_icmp()
        return self._probe_http()

    def _probe_http(self) -> bool:
        """
        Send GET to the probe URL without following redirects.

        Returns:
            True only for a 204 response
        """
        try:
            response = requests.get(self.url, timeout=self.timeout, allow_redirects=False)

            if response.status_code == 204:
                return True

            logger.info(f"Liveness probe returned status {response.status_code} "
                        f"(captive portal suspected)")
            return False

        except requests.exceptions.Timeout:
            logger.warning(f"Timeout probing {self.url}")
            return False
        except requests.exceptions.ConnectionError as e:
            logger.warning(f"Connection error probing {self.url}: {e}")
            return False
        except requests.exceptions.RequestException as e:
            logger.warning(f"Request error probing {self.url}: {e}")
            return False

    def _probe_icmp(self) -> bool:
        """
        Ping the probe host once.

        Raises:
            TelemetryUnavailable: If raw sockets are not permitted
        """
        try:
            # ping3.ping returns seconds, None on timeout, False on error
            rtt_seconds = ping3.ping(self.host, timeout=self.timeout)
        except OSError as e:
            raise TelemetryUnavailable(f"ICMP probe not permitted: {e}") from e

        if rtt_seconds is None or rtt_seconds is False:
            logger.debug(f"Ping to {self.host} failed")
            return False

        logger.debug(f"Ping to {self.host}: {rtt_seconds * 1000:.2f}ms")
        return True
