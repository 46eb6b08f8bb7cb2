"""
Connectivity change watcher for Agent.

Follows ``nmcli monitor`` and reports link up/down events so the agent can
re-evaluate without waiting for the next scheduled cycle.
"""

import logging
import subprocess
import threading
from typing import Callable, List, Optional


logger = logging.getLogger(__name__)


LOST_MARKERS = ("disconnected", "unavailable", "connectivity is now 'none'")
AVAILABLE_MARKERS = (": connected", "connectivity is now 'full'", "connectivity is now 'portal'")


def classify_monitor_line(line: str) -> Optional[bool]:
    """
    Classify one line of ``nmcli monitor`` output.

    Returns:
        True if connectivity was lost, False if it became available,
        None if the line is not a connectivity event

    Examples:
        >>> classify_monitor_line("wlan0: disconnected")
        True
        >>> classify_monitor_line("wlan0: connected")
        False
        >>> classify_monitor_line("Hostname set to 'box'") is None
        True
    """
    text = line.strip().lower()
    if any(marker in text for marker in LOST_MARKERS):
        return True
    if any(marker in text for marker in AVAILABLE_MARKERS):
        return False
    return None


class ConnectivityWatcher:
    """
    Background reader of NetworkManager events.

    Attributes:
        callback: Called with ``lost`` (bool) for each connectivity event
        command: Monitor command (default: ["nmcli", "monitor"])
    """

    def __init__(self, callback: Callable[[bool], None], command: Optional[List[str]] = None):
        self.callback = callback
        self.command = command or ["nmcli", "monitor"]
        self.process: Optional[subprocess.Popen] = None
        self.thread: Optional[threading.Thread] = None
        self.running = False

    def handle_line(self, line: str) -> None:
        lost = classify_monitor_line(line)
        if lost is None:
            return

        logger.debug(f"Connectivity {'lost' if lost else 'available'}: {line.strip()}")
        try:
            self.callback(lost)
        except Exception as e:
            logger.error(f"Connectivity callback failed: {e}", exc_info=True)

    def _watch_loop(self) -> None:
        logger.info("Connectivity watcher started")

        try:
            self.process = subprocess.Popen(
                self.command,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True
            )
        except FileNotFoundError:
            logger.error(f"Cannot watch connectivity: {self.command[0]} not found")
            self.running = False
            return

        for line in self.process.stdout:
            if not self.running:
                break
            self.handle_line(line)

        logger.info("Connectivity watcher stopped")

    def start(self) -> None:
        if self.running:
            logger.warning("Connectivity watcher already running")
            return

        self.running = True
        self.thread = threading.Thread(
            target=self._watch_loop,
            name="ConnectivityWatcherThread",
            daemon=True
        )
        self.thread.start()

    def stop(self) -> None:
        if not self.running:
            return

        self.running = False
        if self.process is not None and self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()

        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=5)
