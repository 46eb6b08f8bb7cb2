"""
Scripted scenario harness for Agent.

Feeds deterministic telemetry frames into the evaluation loop and records
every action it takes. Used by the tests and by manual_test_agent.py to
replay situations such as a captive hotspot or a dying 2.4GHz link
without touching real hardware.
"""

import logging
from typing import Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field

from agent.executor import ActionExecutor
from agent.liveness import LivenessChecker
from agent.telemetry import ContextMonitor, TelemetryProvider, TelemetryUnavailable
from models import ConnectionSnapshot, SavedNetwork, ScanResult


logger = logging.getLogger(__name__)


class TelemetryFrame(BaseModel):
    """
    Everything the providers report for one evaluation cycle.

    Attributes:
        failing: Reader names that raise TelemetryUnavailable this frame
            (e.g., {"get_rssi", "has_internet_access"})
    """
    model_config = ConfigDict(frozen=True)

    rssi: int = -55
    frequency: int = 2437
    link_speed: int = 72
    wifi_enabled: bool = True
    bssid: Optional[str] = "aa:bb:cc:dd:ee:01"
    ssid: Optional[str] = "HomeNet"
    has_internet: bool = True
    gaming_active: bool = False
    scan_results: List[ScanResult] = Field(default_factory=list)
    saved_networks: List[SavedNetwork] = Field(default_factory=list)
    rx_bytes: int = 0
    tx_bytes: int = 0
    carrier_name: str = "Carrier"
    network_type: str = "4G"
    cellular_signal: int = -85
    failing: Set[str] = Field(default_factory=set)


class ScriptedTelemetry(TelemetryProvider, LivenessChecker, ContextMonitor):
    """
    Telemetry, liveness and context source that replays frames.

    The current frame stays in effect until ``advance()`` or ``load()``.
    """

    def __init__(self, frames: Optional[Iterable[TelemetryFrame]] = None):
        self.frames: List[TelemetryFrame] = list(frames or [TelemetryFrame()])
        self.position = 0

    @property
    def frame(self) -> TelemetryFrame:
        return self.frames[self.position]

    def load(self, frame: TelemetryFrame) -> None:
        """Replace the current frame."""
        self.frames[self.position] = frame

    def advance(self) -> bool:
        """
        Move to the next frame.

        Returns:
            False if already on the last frame
        """
        if self.position + 1 >= len(self.frames):
            return False
        self.position += 1
        return True

    def _get(self, reader: str, field: str):
        if reader in self.frame.failing:
            raise TelemetryUnavailable(f"{reader} unavailable in scripted frame")
        return getattr(self.frame, field)

    def get_rssi(self) -> int:
        return self._get("get_rssi", "rssi")

    def get_frequency(self) -> int:
        return self._get("get_frequency", "frequency")

    def get_link_speed(self) -> int:
        return self._get("get_link_speed", "link_speed")

    def is_wifi_enabled(self) -> bool:
        return self._get("is_wifi_enabled", "wifi_enabled")

    def get_connected_bssid(self) -> Optional[str]:
        return self._get("get_connected_bssid", "bssid")

    def get_connected_ssid(self) -> Optional[str]:
        return self._get("get_connected_ssid", "ssid")

    def get_scan_results(self) -> List[ScanResult]:
        return self._get("get_scan_results", "scan_results")

    def get_total_rx_bytes(self) -> int:
        return self._get("get_total_rx_bytes", "rx_bytes")

    def get_total_tx_bytes(self) -> int:
        return self._get("get_total_tx_bytes", "tx_bytes")

    def get_carrier_name(self) -> str:
        return self._get("get_carrier_name", "carrier_name")

    def get_network_type(self) -> str:
        return self._get("get_network_type", "network_type")

    def get_signal_strength(self) -> int:
        return self._get("get_signal_strength", "cellular_signal")

    def get_saved_networks(self) -> List[SavedNetwork]:
        return self._get("get_saved_networks", "saved_networks")

    def has_internet_access(self) -> bool:
        return self._get("has_internet_access", "has_internet")

    def is_gaming_active(self) -> bool:
        return self._get("is_gaming_active", "gaming_active")


class RecordingActionExecutor(ActionExecutor):
    """
    Executor that records calls instead of touching the radio.

    Attributes:
        calls: List of (action, args) tuples in call order
        failing: Action names that raise RuntimeError when called
    """

    def __init__(self, failing: Optional[Set[str]] = None):
        self.calls: List[Tuple[str, tuple]] = []
        self.failing = set(failing or [])

    def _record(self, action: str, *args) -> bool:
        self.calls.append((action, args))
        if action in self.failing:
            raise RuntimeError(f"{action} failed")
        return True

    def disconnect(self) -> bool:
        return self._record("disconnect")

    def start_scan(self) -> bool:
        return self._record("start_scan")

    def switch_to(self, bssid: str, ssid: str) -> bool:
        return self._record("switch_to", bssid, ssid)

    def set_wifi_enabled(self, enabled: bool) -> bool:
        return self._record("set_wifi_enabled", enabled)

    def actions(self) -> List[str]:
        return [action for action, _ in self.calls]

    def clear(self) -> None:
        self.calls.clear()


def run_scenario(agent, telemetry: ScriptedTelemetry) -> List[ConnectionSnapshot]:
    """
    Evaluate one cycle per frame and collect the published snapshots.

    Args:
        agent: Agent wired to ``telemetry``
        telemetry: Scripted source positioned at its first frame

    Returns:
        One snapshot per frame, in order
    """
    snapshots = [agent.evaluate()]
    while telemetry.advance():
        snapshots.append(agent.evaluate())

    logger.debug(f"Scenario replayed {len(snapshots)} frames")
    return snapshots
