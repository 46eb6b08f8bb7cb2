"""
Decision engine for the Smart Wi-Fi Agent.

This module holds the classification rules that turn a single telemetry
reading into a verdict (healthy, quarantine, mobile data fallback), plus
the band-upgrade and roaming candidate selection. Roaming uses a signal
hysteresis so the agent does not flap between access points of similar
strength.
"""

import logging
from enum import Enum
from typing import Iterable, List, NamedTuple, Optional

from pydantic import ValidationError

from models import SavedNetwork, ScanResult, Thresholds


logger = logging.getLogger(__name__)


ZOMBIE_RSSI_FLOOR = -60
FALLBACK_RSSI_CEILING = -80
BAND_5GHZ_MIN_FREQUENCY = 4900
BAND_UPGRADE_MIN_LEVEL = -70
DEFAULT_SIGNAL_THRESHOLD = 10


class Verdict(str, Enum):
    """Outcome of classifying one reading."""
    HEALTHY = "healthy"
    QUARANTINE = "quarantine"
    FALLBACK = "fallback"


class RoamDecision(NamedTuple):
    """
    Roaming outcome for one cycle.

    Attributes:
        target: Scan result the agent would move to
        to_hotspot: True if the target is a lower-tier hotspot
        skipped: True if the move was vetoed by the hotspot setting
    """
    target: ScanResult
    to_hotspot: bool = False
    skipped: bool = False


def frequency_band(frequency_mhz: int) -> str:
    """
    Map a center frequency to a band label.

    Examples:
        >>> frequency_band(5180)
        '5GHz'
        >>> frequency_band(2437)
        '2.4GHz'
    """
    return "5GHz" if frequency_mhz > BAND_5GHZ_MIN_FREQUENCY else "2.4GHz"


def drop_threshold(sensitivity: int) -> int:
    """
    Map sensitivity (0-100) to the dBm level below which a link counts as weak.

    0 holds on to weak links (-90 dBm), 100 drops them early (-50 dBm).

    Examples:
        >>> drop_threshold(0)
        -90
        >>> drop_threshold(50)
        -70
        >>> drop_threshold(100)
        -50
    """
    return -90 + int(sensitivity / 100 * 40)


def coerce_scan_results(results: Optional[Iterable]) -> List[ScanResult]:
    """
    Normalize raw scan data, dropping malformed entries.

    Accepts ScanResult objects or plain dicts. Anything that fails
    validation is skipped so bad scan data reads as "no candidate".
    """
    cleaned: List[ScanResult] = []
    if not results:
        return cleaned

    for item in results:
        if isinstance(item, ScanResult):
            cleaned.append(item)
            continue
        try:
            cleaned.append(ScanResult.model_validate(item))
        except ValidationError as e:
            logger.debug(f"Skipping malformed scan entry {item!r}: {e.error_count()} errors")

    return cleaned


class DecisionEngine:
    """
    Rule evaluator for connection health.

    The engine is stateless apart from the probation store it consults when
    filtering roaming candidates.

    Attributes:
        probation: ProbationStore consulted for quarantined access points
    """

    def __init__(self, probation=None):
        self.probation = probation

    def is_zombie_candidate(self, rssi: int, has_internet: bool) -> bool:
        """Strong signal but no internet: captive or dead access point."""
        return rssi > ZOMBIE_RSSI_FLOOR and not has_internet

    def is_fallback_candidate(self, rssi: int, has_internet: bool) -> bool:
        """Weak signal and no internet: prefer mobile data over quarantine."""
        return not has_internet and rssi < FALLBACK_RSSI_CEILING

    def is_significantly_better(
        self,
        new_rssi: int,
        current_rssi: int,
        threshold: int = DEFAULT_SIGNAL_THRESHOLD
    ) -> bool:
        """
        Check whether a candidate signal clears the roaming hysteresis.

        Examples:
            >>> DecisionEngine().is_significantly_better(-50, -65)
            True
            >>> DecisionEngine().is_significantly_better(-58, -65)
            False
        """
        return new_rssi > current_rssi + threshold

    def classify(self, rssi: int, has_internet: bool) -> Verdict:
        """
        Combine the candidate rules into one verdict.

        Fallback candidacy wins over zombie candidacy, so a weak and dead
        link is never quarantined.
        """
        if self.is_fallback_candidate(rssi, has_internet):
            return Verdict.FALLBACK
        if self.is_zombie_candidate(rssi, has_internet):
            return Verdict.QUARANTINE
        return Verdict.HEALTHY

    def find_band_upgrade(self, ssid: Optional[str], scan_results) -> Optional[ScanResult]:
        """
        Find a 5GHz access point broadcasting the current network name.

        Args:
            ssid: Name of the network currently joined
            scan_results: Latest scan results (malformed entries are ignored)

        Returns:
            The first matching access point above -70 dBm, or None
        """
        if not ssid:
            return None

        wanted = ssid.replace('"', '')
        for result in coerce_scan_results(scan_results):
            if result.ssid.replace('"', '') != wanted:
                continue
            if result.frequency > BAND_5GHZ_MIN_FREQUENCY and result.level > BAND_UPGRADE_MIN_LEVEL:
                return result

        return None

    def select_roam_target(
        self,
        current_bssid: Optional[str],
        current_rssi: int,
        current_is_hotspot: bool,
        scan_results,
        saved_networks: List[SavedNetwork],
        thresholds: Thresholds,
        now: Optional[float] = None
    ) -> Optional[RoamDecision]:
        """
        Pick a better saved network when the current link is weak.

        Route Selection Logic:
            1. Do nothing unless the current signal is below the drop threshold
            2. Keep saved networks that are not the current AP, not under
               probation, and better by at least ``min_signal_diff`` dB
            3. Prefer same-or-higher tier (router over hotspot), preferred
               networks first, then strongest signal
            4. Fall back to a hotspot only if hotspot switching is enabled,
               otherwise report the skipped hotspot

        Returns:
            RoamDecision, or None when no move is warranted
        """
        if current_rssi >= drop_threshold(thresholds.sensitivity):
            return None

        saved = {network.ssid: network for network in saved_networks}
        candidates = []
        for result in coerce_scan_results(scan_results):
            if not result.ssid or result.ssid not in saved:
                continue
            if result.bssid == current_bssid:
                continue
            if self.probation is not None and self.probation.is_under_probation(result.bssid, now):
                continue
            if not self.is_significantly_better(result.level, current_rssi, thresholds.min_signal_diff):
                continue
            candidates.append(result)

        if not candidates:
            return None

        def rank(result: ScanResult):
            return (saved[result.ssid].preferred, result.level)

        current_tier = 0 if current_is_hotspot else 1
        same_or_higher = [c for c in candidates if (0 if c.is_hotspot else 1) >= current_tier]
        if same_or_higher:
            best = max(same_or_higher, key=rank)
            return RoamDecision(target=best, to_hotspot=best.is_hotspot)

        best = max(candidates, key=rank)
        if thresholds.hotspot_switching_enabled:
            return RoamDecision(target=best, to_hotspot=True)
        return RoamDecision(target=best, to_hotspot=True, skipped=True)
