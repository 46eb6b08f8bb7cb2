"""
Telemetry module for Agent - point-in-time reads of radio and link state.

This module defines the query interfaces the evaluation loop polls and a
Linux implementation backed by iw, nmcli, ModemManager (mmcli) and psutil.
Every read either returns a value or raises TelemetryUnavailable; the
caller decides what to fall back to.
"""

import json
import logging
import re
import subprocess
import time
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Tuple

import psutil

from engine.decision import coerce_scan_results
from models import SavedNetwork, ScanResult


logger = logging.getLogger(__name__)


NO_SIGNAL_DBM = -127

# Cellular signal level (0-4 bars) to approximate dBm
LEVEL_TO_DBM = {4: -65, 3: -85, 2: -100, 1: -115, 0: -120}

ACCESS_TECH_TO_NETWORK_TYPE = {
    "5gnr": "5G",
    "lte": "4G",
    "hspa-plus": "3G",
    "hspa": "3G",
    "hsdpa": "3G",
    "hsupa": "3G",
    "umts": "3G",
    "edge": "2G",
    "gprs": "2G",
    "gsm": "2G",
}


class TelemetryUnavailable(Exception):
    """Raised when a telemetry source cannot be read (radio off, tool missing, timeout)."""
    pass


class TelemetryProvider(ABC):
    """Query interface for Wi-Fi, traffic and cellular telemetry."""

    @abstractmethod
    def get_rssi(self) -> int:
        """Signal strength of the current Wi-Fi link in dBm."""

    @abstractmethod
    def get_frequency(self) -> int:
        """Center frequency of the current Wi-Fi link in MHz (0 if not connected)."""

    @abstractmethod
    def get_link_speed(self) -> int:
        """Negotiated link speed in Mbps (0 if not connected)."""

    @abstractmethod
    def is_wifi_enabled(self) -> bool:
        """Whether the Wi-Fi radio is switched on."""

    @abstractmethod
    def get_connected_bssid(self) -> Optional[str]:
        """BSSID of the associated access point, or None."""

    @abstractmethod
    def get_connected_ssid(self) -> Optional[str]:
        """SSID of the associated network, or None."""

    @abstractmethod
    def get_scan_results(self) -> List[ScanResult]:
        """Access points from the most recent scan."""

    @abstractmethod
    def get_total_rx_bytes(self) -> int:
        """Bytes received on all interfaces since boot."""

    @abstractmethod
    def get_total_tx_bytes(self) -> int:
        """Bytes sent on all interfaces since boot."""

    @abstractmethod
    def get_carrier_name(self) -> str:
        """Name of the mobile operator."""

    @abstractmethod
    def get_network_type(self) -> str:
        """Cellular generation label (e.g., "4G")."""

    @abstractmethod
    def get_signal_strength(self) -> int:
        """Cellular signal strength in dBm."""

    @abstractmethod
    def get_saved_networks(self) -> List[SavedNetwork]:
        """Saved Wi-Fi profiles."""


class ContextMonitor(ABC):
    """Foreground context used to infer gaming mode."""

    @abstractmethod
    def is_gaming_active(self) -> bool:
        """Whether a latency-sensitive application is in use."""


def parse_link_info(output: str) -> Dict[str, object]:
    """
    Parse ``iw dev <iface> link`` output.

    Example input:
        Connected to aa:bb:cc:dd:ee:ff (on wlan0)
                SSID: HomeNet
                freq: 5180
                signal: -55 dBm
                tx bitrate: 433.3 MBit/s VHT-MCS 9 80MHz

    Returns:
        Dictionary with any of: bssid, ssid, frequency, signal, tx_bitrate.
        Empty when the interface is not connected.
    """
    info: Dict[str, object] = {}

    bssid_match = re.search(r"Connected to ([0-9a-fA-F:]{17})", output)
    if not bssid_match:
        return info
    info["bssid"] = bssid_match.group(1).lower()

    ssid_match = re.search(r"SSID: (.+)", output)
    if ssid_match:
        info["ssid"] = ssid_match.group(1).strip()

    freq_match = re.search(r"freq: ([\d.]+)", output)
    if freq_match:
        info["frequency"] = int(float(freq_match.group(1)))

    signal_match = re.search(r"signal: (-?\d+)", output)
    if signal_match:
        info["signal"] = int(signal_match.group(1))

    tx_match = re.search(r"tx bitrate: ([\d.]+) MBit/s", output)
    if tx_match:
        info["tx_bitrate"] = int(float(tx_match.group(1)))

    return info


def parse_scan_dump(output: str, hotspot_ssids: Iterable[str] = ()) -> List[ScanResult]:
    """
    Parse ``iw dev <iface> scan dump`` output into scan results.

    Entries missing a frequency or signal are dropped.
    """
    hotspots = set(hotspot_ssids)
    raw: List[Dict[str, object]] = []
    current: Optional[Dict[str, object]] = None

    for line in output.split("\n"):
        line = line.strip()

        # New BSS entry, e.g. "BSS aa:bb:cc:dd:ee:ff(on wlan0) -- associated"
        if line.startswith("BSS "):
            if current is not None:
                raw.append(current)
            current = {"bssid": line.split()[1].split("(")[0].lower()}
            continue

        if current is None:
            continue

        freq_match = re.match(r"freq: ([\d.]+)", line)
        if freq_match:
            current["frequency"] = int(float(freq_match.group(1)))
            continue

        signal_match = re.match(r"signal: (-?[\d.]+) dBm", line)
        if signal_match:
            current["level"] = int(float(signal_match.group(1)))
            continue

        ssid_match = re.match(r"SSID: (.*)", line)
        if ssid_match:
            current["ssid"] = ssid_match.group(1).strip()
            continue

    if current is not None:
        raw.append(current)

    for entry in raw:
        entry["is_hotspot"] = entry.get("ssid", "") in hotspots

    return coerce_scan_results(raw)


def signal_quality_to_dbm(quality_percent: int) -> int:
    """
    Approximate dBm from a 0-100 signal quality.

    Examples:
        >>> signal_quality_to_dbm(100)
        -65
        >>> signal_quality_to_dbm(30)
        -115
    """
    level = max(0, min(4, quality_percent // 25))
    return LEVEL_TO_DBM[level]


class LinuxTelemetryProvider(TelemetryProvider):
    """
    Telemetry provider for Linux hosts.

    Attributes:
        interface: Wi-Fi interface name (e.g., "wlan0")
        hotspot_ssids: SSIDs that belong to mobile hotspots
        preferred_ssids: SSIDs the user marked as preferred
        modem: ModemManager modem selector (default: "any")
        timeout: Subprocess timeout in seconds
        link_cache_ttl: Seconds a link reading is reused across getters
    """

    def __init__(
        self,
        interface: str = "wlan0",
        hotspot_ssids: Optional[List[str]] = None,
        preferred_ssids: Optional[List[str]] = None,
        modem: str = "any",
        timeout: int = 5,
        link_cache_ttl: float = 1.0
    ):
        self.interface = interface
        self.hotspot_ssids = list(hotspot_ssids or [])
        self.preferred_ssids = list(preferred_ssids or [])
        self.modem = modem
        self.timeout = timeout
        self.link_cache_ttl = link_cache_ttl
        self._link_cache: Optional[Tuple[float, Dict[str, object]]] = None

        logger.info(f"LinuxTelemetryProvider initialized: interface={interface}, "
                    f"hotspots={len(self.hotspot_ssids)}, preferred={len(self.preferred_ssids)}")

    def _run(self, command: List[str]) -> str:
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout
            )
            return result.stdout
        except subprocess.TimeoutExpired as e:
            raise TelemetryUnavailable(f"Timeout running '{' '.join(command)}'") from e
        except subprocess.CalledProcessError as e:
            raise TelemetryUnavailable(f"'{' '.join(command)}' failed: {e.stderr.strip()}") from e
        except FileNotFoundError as e:
            raise TelemetryUnavailable(f"Command not found: {command[0]}") from e

    def _link_info(self) -> Dict[str, object]:
        """
        Parsed link state, shared by the per-field getters.

        One reading serves every getter called within ``link_cache_ttl``
        seconds, so a cycle reports signal, band and BSSID of the same
        association. Failed reads are not cached.
        """
        now = time.monotonic()
        if self._link_cache is not None:
            read_at, info = self._link_cache
            if now - read_at < self.link_cache_ttl:
                return info

        info = parse_link_info(self._run(["iw", "dev", self.interface, "link"]))
        self._link_cache = (now, info)
        return info

    def get_rssi(self) -> int:
        return self._link_info().get("signal", NO_SIGNAL_DBM)

    def get_frequency(self) -> int:
        return self._link_info().get("frequency", 0)

    def get_link_speed(self) -> int:
        return self._link_info().get("tx_bitrate", 0)

    def is_wifi_enabled(self) -> bool:
        return self._run(["nmcli", "radio", "wifi"]).strip() == "enabled"

    def get_connected_bssid(self) -> Optional[str]:
        return self._link_info().get("bssid")

    def get_connected_ssid(self) -> Optional[str]:
        ssid = self._link_info().get("ssid")
        if ssid is None or ssid == "<unknown ssid>":
            return None
        return ssid.replace('"', '')

    def get_scan_results(self) -> List[ScanResult]:
        output = self._run(["iw", "dev", self.interface, "scan", "dump"])
        return parse_scan_dump(output, self.hotspot_ssids)

    def get_total_rx_bytes(self) -> int:
        return psutil.net_io_counters().bytes_recv

    def get_total_tx_bytes(self) -> int:
        return psutil.net_io_counters().bytes_sent

    def _modem_info(self) -> Dict:
        output = self._run(["mmcli", "-m", self.modem, "-J"])
        try:
            return json.loads(output).get("modem", {})
        except json.JSONDecodeError as e:
            raise TelemetryUnavailable(f"Unreadable mmcli output: {e}") from e

    def get_carrier_name(self) -> str:
        modem = self._modem_info()
        name = modem.get("3gpp", {}).get("operator-name") or ""
        name = name.strip()
        if not name or name == "--":
            return "Mobile Network"
        return name

    def get_network_type(self) -> str:
        technologies = self._modem_info().get("generic", {}).get("access-technologies") or []
        for technology in technologies:
            network_type = ACCESS_TECH_TO_NETWORK_TYPE.get(technology.lower())
            if network_type:
                return network_type
        return "Mobile"

    def get_signal_strength(self) -> int:
        quality = self._modem_info().get("generic", {}).get("signal-quality", {}).get("value")
        try:
            return signal_quality_to_dbm(int(quality))
        except (TypeError, ValueError) as e:
            raise TelemetryUnavailable(f"No signal quality reported: {quality!r}") from e

    def get_saved_networks(self) -> List[SavedNetwork]:
        output = self._run(["nmcli", "-t", "-f", "NAME,TYPE", "connection", "show"])

        try:
            levels: Dict[str, int] = {}
            for result in self.get_scan_results():
                levels[result.ssid] = max(result.level, levels.get(result.ssid, NO_SIGNAL_DBM))
        except TelemetryUnavailable as e:
            logger.debug(f"Saved network levels unavailable: {e}")
            levels = {}

        networks = []
        for line in output.splitlines():
            # nmcli terse mode escapes literal colons as "\:"
            parts = re.split(r"(?<!\\):", line.strip())
            if len(parts) != 2 or parts[1] != "802-11-wireless":
                continue
            name = parts[0].replace("\\:", ":")
            networks.append(SavedNetwork(
                ssid=name,
                level=levels.get(name, NO_SIGNAL_DBM),
                preferred=name in self.preferred_ssids
            ))

        return networks


class ProcessContextMonitor(ContextMonitor):
    """
    Infer gaming mode from running process names.

    Attributes:
        process_names: Lower-cased executable names that indicate gaming
    """

    def __init__(self, process_names: Optional[List[str]] = None):
        self.process_names = {name.lower() for name in (process_names or [])}

    def is_gaming_active(self) -> bool:
        if not self.process_names:
            return False

        for process in psutil.process_iter(["name"]):
            try:
                name = (process.info.get("name") or "").lower()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            if name in self.process_names:
                logger.debug(f"Gaming process detected: {name}")
                return True

        return False
