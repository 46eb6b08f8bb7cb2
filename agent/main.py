"""
Main Agent program for the Smart Wi-Fi Agent.

This module runs the evaluation loop that polls telemetry, applies the
decision rules (zombie quarantine, mobile data fallback, band priority,
roaming) and publishes the resulting snapshot. A second thread samples
traffic counters for the throughput display.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from agent.executor import ActionExecutor, NmcliActionExecutor
from agent.liveness import InternetLivenessChecker, LivenessChecker
from agent.state import StatePublisher
from agent.telemetry import (
    NO_SIGNAL_DBM,
    ContextMonitor,
    LinuxTelemetryProvider,
    ProcessContextMonitor,
    TelemetryProvider,
)
from agent.watcher import ConnectivityWatcher
from config.parser import AgentConfig
from engine.decision import DecisionEngine, Verdict, frequency_band
from engine.probation import ProbationStore
from models import (
    INTERNET_CONNECTED,
    INTERNET_UNAVAILABLE,
    MIN_SIGNAL_DIFF_RANGE,
    MOBILE_DATA_THRESHOLD_RANGE,
    MODE_GAMING,
    MODE_MOBILE_FALLBACK,
    MODE_STATIONARY,
    SENSITIVITY_RANGE,
    ConnectionSnapshot,
    ConnectionSource,
    ProbationItem,
    SettingsUpdate,
)


logger = logging.getLogger(__name__)


DISCONNECTED_SSID = "Disconnected"
INVALID_SSIDS = ("Unknown", "<unknown ssid>")


def format_throughput(bytes_per_second: float) -> str:
    """
    Format a byte rate for display.

    Examples:
        >>> format_throughput(2048)
        '2 KB/s'
        >>> format_throughput(3 * 1024 * 1024)
        '3.0 MB/s'
    """
    if bytes_per_second > 1024 * 1024:
        return f"{bytes_per_second / (1024 * 1024):.1f} MB/s"
    return f"{int(bytes_per_second // 1024)} KB/s"


def _clamp(value: int, bounds: Tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, int(value)))


class Agent:
    """
    Main Agent coordinator.

    Owns the evaluation and traffic threads, the probation store and the
    decision-derived snapshot fields. Collaborators not passed in are built
    from the configuration with the Linux implementations.

    Attributes:
        config: Agent configuration
        telemetry: Wi-Fi, traffic and cellular telemetry provider
        liveness: Internet reachability checker
        context: Foreground context monitor (gaming inference)
        executor: Action executor
        publisher: Shared snapshot publisher
        probation: Quarantine store
        decision: Rule evaluator
        clock: Time source in seconds
    """

    def __init__(
        self,
        config: AgentConfig,
        telemetry: Optional[TelemetryProvider] = None,
        liveness: Optional[LivenessChecker] = None,
        context: Optional[ContextMonitor] = None,
        executor: Optional[ActionExecutor] = None,
        publisher: Optional[StatePublisher] = None,
        probation: Optional[ProbationStore] = None,
        clock: Callable[[], float] = time.time
    ):
        self.config = config
        self.clock = clock

        if telemetry is None:
            telemetry = LinuxTelemetryProvider(
                interface=config.interface,
                hotspot_ssids=config.hotspot_ssids,
                preferred_ssids=config.preferred_ssids,
                modem=config.modem
            )
        if liveness is None:
            liveness = InternetLivenessChecker(
                method=config.liveness_method,
                url=config.liveness_url,
                host=config.liveness_host,
                timeout=config.liveness_timeout
            )
        if context is None:
            context = ProcessContextMonitor(config.gaming_processes)
        if executor is None:
            executor = NmcliActionExecutor(interface=config.interface)
        if publisher is None:
            publisher = StatePublisher(ConnectionSnapshot(thresholds=config.thresholds))
        if probation is None:
            probation = ProbationStore()

        self.telemetry = telemetry
        self.liveness = liveness
        self.context = context
        self.executor = executor
        self.publisher = publisher
        self.probation = probation
        self.decision = DecisionEngine(self.probation)

        # Last successful reading per telemetry source
        self._last_readings: Dict[str, Any] = {}
        self._last_traffic: Optional[Tuple[int, int, float]] = None

        # Thread control
        self.running = False
        self._stop_event = threading.Event()
        self._cycle_lock = threading.Lock()
        self._timers_lock = threading.Lock()
        self._pending_timers: Set[threading.Timer] = set()
        self.evaluation_thread: Optional[threading.Thread] = None
        self.traffic_thread: Optional[threading.Thread] = None
        self.watcher: Optional[ConnectivityWatcher] = None

        logger.info(f"Agent initialized: interface={config.interface}, "
                    f"interval={config.evaluation_interval}s")

    # ------------------------------------------------------------------
    # Guarded collaborator access
    # ------------------------------------------------------------------

    def _read(self, source: str, reader: Callable[[], Any], default: Any, sticky: bool = True) -> Any:
        """
        Read one telemetry value, falling back on failure.

        Args:
            source: Name used for logging and the last-known cache
            reader: Provider method to call
            default: Value used when nothing was ever read successfully
            sticky: Fall back to the last successful reading when True

        Returns:
            The fresh reading, the last-known reading, or ``default``
        """
        try:
            value = reader()
        except Exception as e:
            logger.warning(f"Telemetry read '{source}' failed: {e}")
            if sticky:
                return self._last_readings.get(source, default)
            return default

        if sticky:
            self._last_readings[source] = value
        return value

    def _act(self, action: str, command: Callable[..., Any], *args) -> bool:
        """Invoke an executor command once. Failures are logged, never retried."""
        try:
            result = command(*args)
        except Exception as e:
            logger.error(f"Action '{action}' failed: {e}")
            return False

        if result is False:
            logger.warning(f"Action '{action}' was not accepted")
            return False
        return True

    def _update(self, **fields) -> ConnectionSnapshot:
        return self.publisher.update(lambda snapshot: snapshot.model_copy(update=fields))

    def _is_hotspot(self, ssid: Optional[str]) -> bool:
        return ssid is not None and ssid in self.config.hotspot_ssids

    # ------------------------------------------------------------------
    # Evaluation cycle
    # ------------------------------------------------------------------

    def evaluate(self) -> ConnectionSnapshot:
        """
        Run one evaluation cycle.

        Cycles never overlap and never raise; a failing cycle is logged and
        the published snapshot keeps its last values.

        Returns:
            The snapshot published at the end of the cycle
        """
        with self._cycle_lock:
            try:
                self._run_cycle()
            except Exception as e:
                logger.error(f"Evaluation cycle failed: {e}", exc_info=True)
            return self.publisher.current()

    def _run_cycle(self) -> None:
        """
        Evaluate once and publish the outcome as a single snapshot update.

        Steps write into ``fields``; nothing is published if a step raises.
        """
        state = self.publisher.current()
        now = self.clock()

        # 1. Service-enabled guard
        if not state.service_running:
            logger.debug("Service disabled, skipping evaluation cycle")
            return

        # 2. Gaming mode gate
        gaming_inferred = bool(self._read("gaming_context", self.context.is_gaming_active, False))
        if state.gaming_mode or gaming_inferred:
            self._update(active_mode=MODE_GAMING, gaming_mode_auto=gaming_inferred)
            logger.debug("Gaming mode active, switching logic paused")
            return
        fields = {"gaming_mode_auto": False}

        # 3. Telemetry
        has_internet = bool(self._read("internet", self.liveness.has_internet_access, False))
        rssi = self._read("rssi", self.telemetry.get_rssi, NO_SIGNAL_DBM)
        band = frequency_band(self._read("frequency", self.telemetry.get_frequency, 0))
        wifi_enabled = bool(self._read("wifi_enabled", self.telemetry.is_wifi_enabled, False))
        bssid = self._read("bssid", self.telemetry.get_connected_bssid, None) if wifi_enabled else None
        ssid = self._read("ssid", self.telemetry.get_connected_ssid, None) if wifi_enabled else None
        fallback_engaged = state.data_fallback
        thresholds = state.thresholds
        valid_ssid = ssid is not None and ssid not in INVALID_SSIDS
        verdict = self.decision.classify(rssi, has_internet)

        # 4. Radio off
        if not wifi_enabled and not fallback_engaged:
            fields.update(
                current_ssid=DISCONNECTED_SSID,
                signal_strength=NO_SIGNAL_DBM,
                frequency_band="-",
                connection_source=ConnectionSource.WIFI_ROUTER
            )

        # 5. Band priority
        band_switched = False
        if (thresholds.prefer_5ghz and wifi_enabled and valid_ssid and band == "2.4GHz"
                and not self.decision.is_zombie_candidate(rssi, has_internet)):
            band_switched = self._try_band_upgrade(ssid, fields)

        # 6. Network info
        if wifi_enabled and valid_ssid:
            source = ConnectionSource.WIFI_HOTSPOT if self._is_hotspot(ssid) else ConnectionSource.WIFI_ROUTER
            fields.update(
                current_ssid=ssid,
                signal_strength=rssi,
                frequency_band=band,
                connection_source=source
            )
        elif wifi_enabled:
            fields.update(signal_strength=rssi, frequency_band=band)

        # 7. Reachability
        fields["internet_status"] = INTERNET_CONNECTED if has_internet else INTERNET_UNAVAILABLE

        # 8. Mobile data fallback
        on_mobile = (not has_internet or not wifi_enabled) and fallback_engaged
        if on_mobile:
            fields.update(self._mobile_data_fields())
        elif wifi_enabled and has_internet:
            fields["active_mode"] = MODE_STATIONARY

        # 9. Enforce existing quarantine
        quarantine_fired = False
        if bssid is not None and self.probation.is_under_probation(bssid, now):
            name = fields.get("current_ssid", state.current_ssid)
            logger.info(f"Access point {bssid} ({name}) is under probation, disconnecting")
            fields.update(last_action=f"Disconnecting Zombie: {name}", zombie_detected=True)
            self._act("disconnect", self.executor.disconnect)
            quarantine_fired = True
        else:
            fields["zombie_detected"] = False

        # 10. New quarantine
        if verdict == Verdict.QUARANTINE and bssid is not None:
            logger.info(f"Zombie access point {bssid}: signal {rssi} dBm without internet, entering probation")
            self.probation.add(bssid, now)
            fields.update(last_action="Zombie Detected: Entering Probation", zombie_detected=True)
            self._act("disconnect", self.executor.disconnect)
            quarantine_fired = True

        # 11. Probation list and saved networks
        saved = self._read("saved_networks", self.telemetry.get_saved_networks, [])
        fields.update(probation_list=self._probation_items(now), saved_networks=list(saved))

        # 12. Roaming
        if (verdict == Verdict.HEALTHY and wifi_enabled and bssid is not None
                and not on_mobile and not quarantine_fired and not band_switched):
            self._try_roam(bssid, rssi, ssid, saved, thresholds, now, fields)

        # Publish the whole cycle as one snapshot
        self._update(**fields)

    def _try_band_upgrade(self, ssid: str, fields: Dict[str, Any]) -> bool:
        self._act("start_scan", self.executor.start_scan)
        results = self._read("scan_results", self.telemetry.get_scan_results, [], sticky=False)

        target = self.decision.find_band_upgrade(ssid, results)
        if target is None:
            logger.debug(f"No better 5GHz access point found for {ssid}")
            return False

        logger.info(f"Found better 5GHz access point: {target.ssid} ({target.bssid}, "
                    f"{target.frequency}MHz, {target.level} dBm). Switching...")
        fields["last_action"] = f"Switching to 5GHz: {target.ssid}"
        self._act("switch_to", self.executor.switch_to, target.bssid, target.ssid)
        return True

    def _mobile_data_fields(self) -> Dict[str, Any]:
        carrier = self._read("carrier_name", self.telemetry.get_carrier_name, "Mobile Network")
        network_type = self._read("network_type", self.telemetry.get_network_type, "Mobile")
        signal = self._read("cellular_signal", self.telemetry.get_signal_strength, -100)

        return {
            "active_mode": MODE_MOBILE_FALLBACK,
            "connection_source": ConnectionSource.MOBILE_DATA,
            "current_ssid": carrier,
            "signal_strength": signal,
            "frequency_band": network_type,
            "link_speed": 0,
        }

    def _probation_items(self, now: float) -> List[ProbationItem]:
        return [
            ProbationItem(bssid=bssid, seconds_remaining=remaining)
            for bssid, remaining in self.probation.snapshot(now)
        ]

    def _try_roam(self, bssid, rssi, ssid, saved, thresholds, now, fields: Dict[str, Any]) -> None:
        results = self._read("scan_results", self.telemetry.get_scan_results, [], sticky=False)
        decision = self.decision.select_roam_target(
            current_bssid=bssid,
            current_rssi=rssi,
            current_is_hotspot=self._is_hotspot(ssid),
            scan_results=results,
            saved_networks=saved,
            thresholds=thresholds,
            now=now
        )
        if decision is None:
            return

        target = decision.target
        if decision.skipped:
            logger.info(f"Skipping hotspot {target.ssid} due to user setting")
            fields["last_action"] = f"Skipped Hotspot: {target.ssid}"
            return

        if decision.to_hotspot:
            logger.info(f"Switching to hotspot {target.ssid} ({target.bssid})")
            fields.update(
                last_action=f"Switching to Hotspot: {target.ssid}",
                connection_source=ConnectionSource.WIFI_HOTSPOT
            )
        else:
            logger.info(f"Auto-switching to better network {target.ssid} "
                        f"({target.level} dBm vs {rssi} dBm)")
            fields["last_action"] = f"Auto-Switching to {target.ssid}"
        self._act("switch_to", self.executor.switch_to, target.bssid, target.ssid)

    # ------------------------------------------------------------------
    # Traffic sampling
    # ------------------------------------------------------------------

    def sample_traffic(self) -> ConnectionSnapshot:
        """
        Take one traffic sample and publish throughput and link speed.

        Only ``current_usage`` and ``link_speed`` are written here.
        """
        now = self.clock()
        try:
            rx = self.telemetry.get_total_rx_bytes()
            tx = self.telemetry.get_total_tx_bytes()
        except Exception as e:
            logger.warning(f"Traffic counters unavailable: {e}")
            return self.publisher.current()

        usage = None
        if self._last_traffic is not None:
            last_rx, last_tx, last_time = self._last_traffic
            delta_bytes = max(0, (rx - last_rx) + (tx - last_tx))
            elapsed = now - last_time
            usage = format_throughput(delta_bytes / elapsed if elapsed > 0 else 0)
        self._last_traffic = (rx, tx, now)

        raw_link_speed = self._read("link_speed", self.telemetry.get_link_speed, 0)
        wifi_enabled = bool(self._read("wifi_enabled", self.telemetry.is_wifi_enabled, False))

        def apply(snapshot: ConnectionSnapshot) -> ConnectionSnapshot:
            on_wifi = wifi_enabled and snapshot.connection_source != ConnectionSource.MOBILE_DATA
            fields = {"link_speed": raw_link_speed if on_wifi and raw_link_speed > 0 else 0}
            if usage is not None:
                fields["current_usage"] = usage
            return snapshot.model_copy(update=fields)

        return self.publisher.update(apply)

    # ------------------------------------------------------------------
    # Settings entry points
    # ------------------------------------------------------------------

    def _set_threshold(self, name: str, value: Any) -> None:
        self.publisher.update(lambda snapshot: snapshot.model_copy(
            update={"thresholds": snapshot.thresholds.model_copy(update={name: value})}
        ))
        logger.info(f"Threshold {name} set to {value}")

    def set_sensitivity(self, value: int) -> None:
        self._set_threshold("sensitivity", _clamp(value, SENSITIVITY_RANGE))

    def set_min_signal_diff(self, value: int) -> None:
        self._set_threshold("min_signal_diff", _clamp(value, MIN_SIGNAL_DIFF_RANGE))

    def set_mobile_data_threshold(self, value: int) -> None:
        self._set_threshold("mobile_data_threshold", _clamp(value, MOBILE_DATA_THRESHOLD_RANGE))

    def set_geofencing(self, enabled: bool) -> None:
        self._set_threshold("geofencing_enabled", bool(enabled))

    def set_5ghz_priority(self, enabled: bool) -> None:
        self._set_threshold("prefer_5ghz", bool(enabled))

    def set_hotspot_switching(self, enabled: bool) -> None:
        self._set_threshold("hotspot_switching_enabled", bool(enabled))

    def set_gaming_mode(self, enabled: bool) -> None:
        self._update(gaming_mode=bool(enabled))
        logger.info(f"Gaming mode: {'ENABLED' if enabled else 'DISABLED'}")

    def set_data_fallback(self, enabled: bool) -> None:
        self._update(data_fallback=bool(enabled))
        logger.info(f"Mobile data fallback: {'ENABLED' if enabled else 'DISABLED'}")

    def set_service_running(self, running: bool) -> None:
        self._update(service_running=bool(running))
        logger.info(f"Service {'enabled' if running else 'disabled'}")

    def release_probation(self, bssid: str) -> bool:
        """
        Let a quarantined access point be tried again immediately.

        Returns:
            True if the access point was under probation
        """
        released = self.probation.release(bssid)
        if released:
            logger.info(f"Released {bssid} from probation")
            self._update(probation_list=self._probation_items(self.clock()))
        return released

    def apply_settings(self, settings: SettingsUpdate) -> ConnectionSnapshot:
        """Apply every field set in a partial settings update."""
        setters = {
            "sensitivity": self.set_sensitivity,
            "min_signal_diff": self.set_min_signal_diff,
            "mobile_data_threshold": self.set_mobile_data_threshold,
            "geofencing_enabled": self.set_geofencing,
            "prefer_5ghz": self.set_5ghz_priority,
            "hotspot_switching_enabled": self.set_hotspot_switching,
            "gaming_mode": self.set_gaming_mode,
            "data_fallback": self.set_data_fallback,
        }
        for name, value in settings.model_dump(exclude_none=True).items():
            setters[name](value)
        return self.publisher.current()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def on_connectivity_change(self, lost: bool = False) -> None:
        """
        Schedule a one-shot re-evaluation after a connectivity event.

        A new link gets ``settle_delay`` seconds to finish coming up; a lost
        link is re-evaluated immediately.
        """
        if self._stop_event.is_set():
            return

        delay = 0 if lost else self.config.settle_delay
        timer = threading.Timer(delay, self._delayed_evaluate)
        timer.daemon = True
        with self._timers_lock:
            self._pending_timers.add(timer)
        timer.start()

    def _delayed_evaluate(self) -> None:
        with self._timers_lock:
            self._pending_timers.discard(threading.current_thread())
        if not self._stop_event.is_set():
            self.evaluate()

    def _evaluation_loop(self) -> None:
        logger.info("Evaluation thread started")

        while not self._stop_event.is_set():
            self.evaluate()
            self._stop_event.wait(self.config.evaluation_interval)

        logger.info("Evaluation thread stopped")

    def _traffic_loop(self) -> None:
        logger.info("Traffic thread started")

        while not self._stop_event.is_set():
            try:
                self.sample_traffic()
            except Exception as e:
                logger.error(f"Error in traffic loop: {e}", exc_info=True)
            self._stop_event.wait(self.config.traffic_interval)

        logger.info("Traffic thread stopped")

    def start(self) -> None:
        """
        Start the Agent.

        Marks the service running and launches the evaluation and traffic
        threads plus the connectivity watcher.
        """
        if self.running:
            logger.warning("Agent already running")
            return

        logger.info("Starting Agent")
        self.running = True
        self._stop_event.clear()
        self.set_service_running(True)

        self.evaluation_thread = threading.Thread(
            target=self._evaluation_loop,
            name="EvaluationThread",
            daemon=True
        )
        self.evaluation_thread.start()

        self.traffic_thread = threading.Thread(
            target=self._traffic_loop,
            name="TrafficThread",
            daemon=True
        )
        self.traffic_thread.start()

        if self.config.watch_connectivity:
            self.watcher = ConnectivityWatcher(self.on_connectivity_change)
            self.watcher.start()

        logger.info("Agent started successfully")

    def stop(self) -> None:
        """
        Stop the Agent.

        Cancels pending re-evaluations, stops the watcher and waits for the
        threads to finish.
        """
        if not self.running:
            logger.warning("Agent not running")
            return

        logger.info("Stopping Agent")
        self.running = False
        self._stop_event.set()

        with self._timers_lock:
            for timer in self._pending_timers:
                timer.cancel()
            self._pending_timers.clear()

        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None

        if self.evaluation_thread and self.evaluation_thread.is_alive():
            self.evaluation_thread.join(timeout=10)

        if self.traffic_thread and self.traffic_thread.is_alive():
            self.traffic_thread.join(timeout=10)

        self.set_service_running(False)
        logger.info("Agent stopped")

    def run(self) -> None:
        """
        Run the Agent (blocking).

        Starts the Agent and blocks until interrupted.
        """
        self.start()

        try:
            while self.running:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Received interrupt signal")
        finally:
            self.stop()


def main():
    """
    Main entry point for Agent program.
    """
    import sys

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if len(sys.argv) < 2:
        print("Usage: python -m agent.main <config_file>")
        sys.exit(1)

    config_file = sys.argv[1]

    try:
        config = AgentConfig.from_file(config_file)
    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    agent = Agent(config)

    if not config.api_enabled:
        agent.run()
        return

    import uvicorn
    from engine.api import app, attach_agent

    attach_agent(agent)
    agent.start()
    try:
        uvicorn.run(app, host=config.api_listen_address, port=config.api_port)
    finally:
        agent.stop()


if __name__ == "__main__":
    main()
