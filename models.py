"""
Pydantic data models for the Smart Wi-Fi Agent.

These models define the observable connection snapshot published by the
Agent, the user-tunable thresholds, and the reference data (scan results,
saved networks) read from the telemetry providers.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


MODE_STATIONARY = "Stationary (Home/Office)"
MODE_GAMING = "Gaming Mode (Paused)"
MODE_MOBILE_FALLBACK = "Mobile Data Fallback"

INTERNET_CONNECTED = "Connected"
INTERNET_UNAVAILABLE = "No Internet"

SENSITIVITY_RANGE = (0, 100)
MIN_SIGNAL_DIFF_RANGE = (5, 30)
MOBILE_DATA_THRESHOLD_RANGE = (1, 20)


class ConnectionSource(str, Enum):
    """Where the device currently gets its connectivity from."""
    WIFI_ROUTER = "WIFI_ROUTER"
    WIFI_HOTSPOT = "WIFI_HOTSPOT"
    MOBILE_DATA = "MOBILE_DATA"


class ScanResult(BaseModel):
    """
    A single access point seen in the latest Wi-Fi scan.

    Attributes:
        bssid: Access point hardware address (e.g., "aa:bb:cc:dd:ee:ff")
        ssid: Network name (may be empty for hidden networks)
        frequency: Center frequency in MHz
        level: Signal level in dBm
        is_hotspot: True if the SSID is a configured mobile hotspot
    """
    model_config = ConfigDict(frozen=True)

    bssid: str = Field(..., min_length=1, description="Access point BSSID")
    ssid: str = Field("", description="Network name")
    frequency: int = Field(..., gt=0, description="Frequency in MHz")
    level: int = Field(..., description="Signal level in dBm")
    is_hotspot: bool = Field(False, description="Network is a mobile hotspot")

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Ensure level is a plausible dBm reading."""
        if v > 0 or v < -127:
            raise ValueError("level must be between -127 and 0 dBm")
        return v


class SavedNetwork(BaseModel):
    """
    Saved network reference data. Never mutated by the engine.

    Attributes:
        ssid: Network name of the saved profile
        level: Last known signal level in dBm
        preferred: True for user-preferred ("VIP") networks
    """
    model_config = ConfigDict(frozen=True)

    ssid: str
    level: int = -127
    preferred: bool = False


class ProbationItem(BaseModel):
    """Display row for a quarantined access point."""
    model_config = ConfigDict(frozen=True)

    bssid: str
    seconds_remaining: int = Field(..., ge=0)


class Thresholds(BaseModel):
    """
    User-tunable decision thresholds.

    Attributes:
        sensitivity: 0 (conservative, hold weak links) to 100 (aggressive)
        min_signal_diff: dB improvement required before roaming
        mobile_data_threshold: Mbps below which mobile data is preferable
        geofencing_enabled: Location-aware switching toggle
        prefer_5ghz: Try to move from 2.4GHz to a 5GHz AP of the same network
        hotspot_switching_enabled: Allow roaming onto mobile hotspots
    """
    model_config = ConfigDict(frozen=True)

    sensitivity: int = Field(50, ge=0, le=100)
    min_signal_diff: int = Field(10, ge=5, le=30)
    mobile_data_threshold: int = Field(5, ge=1, le=20)
    geofencing_enabled: bool = False
    prefer_5ghz: bool = False
    hotspot_switching_enabled: bool = True


class ConnectionSnapshot(BaseModel):
    """
    Immutable snapshot of everything the Agent publishes.

    A new snapshot replaces the old one on every change (copy-on-write via
    ``model_copy``); readers never observe a partially updated value.
    """
    model_config = ConfigDict(frozen=True)

    service_running: bool = False
    current_ssid: str = "Searching..."
    signal_strength: int = 0
    frequency_band: str = "2.4GHz"
    link_speed: int = Field(0, description="Link speed in Mbps")
    internet_status: str = "Checking..."
    connection_source: ConnectionSource = ConnectionSource.WIFI_ROUTER
    current_usage: str = Field("0 KB/s", description="Current throughput")
    active_mode: str = MODE_STATIONARY
    last_action: str = "Monitoring..."
    gaming_mode: bool = Field(False, description="Gaming mode set by the user")
    gaming_mode_auto: bool = Field(False, description="Gaming mode inferred from foreground apps")
    data_fallback: bool = Field(False, description="Mobile data fallback engaged by the user")
    zombie_detected: bool = False
    probation_list: List[ProbationItem] = Field(default_factory=list)
    saved_networks: List[SavedNetwork] = Field(default_factory=list)
    thresholds: Thresholds = Field(default_factory=Thresholds)

    @property
    def is_gaming(self) -> bool:
        return self.gaming_mode or self.gaming_mode_auto


class SettingsUpdate(BaseModel):
    """Partial settings change accepted by the state API."""
    sensitivity: Optional[int] = Field(None, ge=0, le=100)
    min_signal_diff: Optional[int] = Field(None, ge=5, le=30)
    mobile_data_threshold: Optional[int] = Field(None, ge=1, le=20)
    geofencing_enabled: Optional[bool] = None
    prefer_5ghz: Optional[bool] = None
    hotspot_switching_enabled: Optional[bool] = None
    gaming_mode: Optional[bool] = None
    data_fallback: Optional[bool] = None


class ServiceUpdate(BaseModel):
    """Body of the service toggle endpoint."""
    running: bool
