"""
Executor module for Agent - carries out Wi-Fi corrective actions.

This module implements command generation and execution for disconnecting,
scanning, switching access points and toggling the radio via NetworkManager.
Actions are best-effort: a True return only means the command was accepted.
"""

import logging
import re
import subprocess
from abc import ABC, abstractmethod
from typing import List, Optional


logger = logging.getLogger(__name__)


BSSID_PATTERN = re.compile(r"[0-9a-fA-F]{2}(:[0-9a-fA-F]{2}){5}")


class ActionExecutor(ABC):
    """Command interface consumed by the evaluation loop."""

    @abstractmethod
    def disconnect(self) -> bool:
        """Drop the current Wi-Fi association."""

    @abstractmethod
    def start_scan(self) -> bool:
        """Request a fresh Wi-Fi scan."""

    @abstractmethod
    def switch_to(self, bssid: str, ssid: str) -> bool:
        """Associate with a specific access point of a network."""

    @abstractmethod
    def set_wifi_enabled(self, enabled: bool) -> bool:
        """Switch the Wi-Fi radio on or off."""


def is_valid_bssid(bssid: str) -> bool:
    """
    Check that a BSSID is six colon-separated hex octets.

    Examples:
        >>> is_valid_bssid("aa:bb:cc:dd:ee:ff")
        True
        >>> is_valid_bssid("aa:bb:cc")
        False
    """
    return bool(bssid) and BSSID_PATTERN.fullmatch(bssid) is not None


class NmcliActionExecutor(ActionExecutor):
    """
    Action executor backed by nmcli.

    Attributes:
        interface: Wi-Fi interface name (default: "wlan0")
        timeout: Subprocess timeout in seconds
        connect_wait: Seconds nmcli waits for an association to complete
    """

    def __init__(self, interface: str = "wlan0", timeout: int = 5, connect_wait: int = 5):
        """
        Initialize Executor.

        Args:
            interface: Wi-Fi interface name (default: "wlan0")
            timeout: Subprocess timeout in seconds (default: 5)
            connect_wait: nmcli --wait value for connect commands (default: 5)
        """
        self.interface = interface
        self.timeout = timeout
        self.connect_wait = connect_wait

        logger.info(f"Executor initialized: interface={interface}")

    def generate_disconnect_command(self) -> List[str]:
        """Example: ["nmcli", "device", "disconnect", "wlan0"]"""
        return ["nmcli", "device", "disconnect", self.interface]

    def generate_scan_command(self) -> List[str]:
        """Example: ["nmcli", "device", "wifi", "rescan", "ifname", "wlan0"]"""
        return ["nmcli", "device", "wifi", "rescan", "ifname", self.interface]

    def generate_switch_command(self, bssid: str, ssid: str) -> Optional[List[str]]:
        """
        Generate 'nmcli device wifi connect' pinned to one access point.

        Args:
            bssid: Target access point BSSID
            ssid: Network name of the target

        Returns:
            Command as list of strings, or None if validation fails
            Example: ["nmcli", "-w", "5", "device", "wifi", "connect", "HomeNet",
                      "bssid", "aa:bb:cc:dd:ee:ff", "ifname", "wlan0"]
        """
        if not is_valid_bssid(bssid):
            logger.error(f"Switch rejected: invalid BSSID {bssid!r}")
            return None

        if not ssid:
            logger.error(f"Switch rejected: empty SSID for {bssid}")
            return None

        command = [
            "nmcli", "-w", str(self.connect_wait),
            "device", "wifi", "connect", ssid,
            "bssid", bssid.lower(),
            "ifname", self.interface
        ]

        logger.debug(f"Generated switch command: {' '.join(command)}")
        return command

    def generate_radio_command(self, enabled: bool) -> List[str]:
        """Example: ["nmcli", "radio", "wifi", "off"]"""
        return ["nmcli", "radio", "wifi", "on" if enabled else "off"]

    def _execute(self, command: Optional[List[str]], action: str, timeout: Optional[int] = None) -> bool:
        """
        Run a generated command.

        Returns:
            True if the command exited successfully, False otherwise
        """
        if command is None:
            return False

        try:
            subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=True,
                timeout=timeout or self.timeout
            )
            logger.info(f"Executed {action}")
            return True

        except subprocess.TimeoutExpired:
            logger.error(f"Timeout executing {action}")
            return False
        except subprocess.CalledProcessError as e:
            logger.error(f"Failed to execute {action}: {e.stderr}")
            return False
        except FileNotFoundError:
            logger.error(f"Cannot execute {action}: nmcli not found")
            return False

    def disconnect(self) -> bool:
        logger.info("Executing disconnect action")
        return self._execute(self.generate_disconnect_command(), "disconnect")

    def start_scan(self) -> bool:
        logger.info("Requesting Wi-Fi scan")
        return self._execute(self.generate_scan_command(), "scan")

    def switch_to(self, bssid: str, ssid: str) -> bool:
        logger.info(f"Attempting switch to {ssid} ({bssid})")
        return self._execute(
            self.generate_switch_command(bssid, ssid),
            f"switch to {bssid}",
            timeout=self.timeout + self.connect_wait
        )

    def set_wifi_enabled(self, enabled: bool) -> bool:
        logger.info(f"Turning Wi-Fi radio {'on' if enabled else 'off'}")
        return self._execute(self.generate_radio_command(enabled), "radio toggle")
