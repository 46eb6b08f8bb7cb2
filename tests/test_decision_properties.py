"""
Property-based tests for the decision engine.
Tests candidate classification, the roaming hysteresis, band upgrades and
roam target selection using Hypothesis.
"""

from hypothesis import given, settings, strategies as st

from engine.decision import (
    DecisionEngine,
    RoamDecision,
    Verdict,
    coerce_scan_results,
    drop_threshold,
    frequency_band,
)
from engine.probation import ProbationStore
from models import SavedNetwork, ScanResult, Thresholds


# Hypothesis strategies for generating test data

rssi_values = st.integers(min_value=-127, max_value=0)


@st.composite
def scan_result(draw, ssids=("HomeNet", "Office", "PhoneHotspot")):
    """Generate a valid scan result for one of a few known networks."""
    octet = draw(st.integers(min_value=0, max_value=255))
    ssid = draw(st.sampled_from(ssids))
    return ScanResult(
        bssid=f"aa:bb:cc:dd:ee:{octet:02x}",
        ssid=ssid,
        frequency=draw(st.sampled_from([2412, 2437, 2462, 5180, 5500, 5745])),
        level=draw(st.integers(min_value=-100, max_value=-20)),
        is_hotspot=(ssid == "PhoneHotspot")
    )


# Property-based tests

@settings(max_examples=100)
@given(rssi=st.integers(min_value=-59, max_value=0))
def test_property_zombie_candidate(rssi):
    """
    Property: Zombie Candidacy

    Any signal stronger than -60 dBm without internet is a zombie candidate
    and is quarantined.
    """
    engine = DecisionEngine()

    assert engine.is_zombie_candidate(rssi, has_internet=False)
    assert engine.classify(rssi, has_internet=False) == Verdict.QUARANTINE


@settings(max_examples=100)
@given(rssi=st.integers(min_value=-127, max_value=-81))
def test_property_fallback_candidate(rssi):
    """
    Property: Fallback Candidacy

    Any signal weaker than -80 dBm without internet is a fallback candidate.
    """
    engine = DecisionEngine()

    assert engine.is_fallback_candidate(rssi, has_internet=False)
    assert engine.classify(rssi, has_internet=False) == Verdict.FALLBACK


@settings(max_examples=100)
@given(rssi=rssi_values, has_internet=st.booleans())
def test_property_fallback_precedence(rssi, has_internet):
    """
    Property: Fallback Precedence

    A reading classified FALLBACK is never quarantined, and a reading with
    internet is always healthy.
    """
    engine = DecisionEngine()
    verdict = engine.classify(rssi, has_internet)

    if has_internet:
        assert verdict == Verdict.HEALTHY
    if engine.is_fallback_candidate(rssi, has_internet):
        assert verdict == Verdict.FALLBACK
    if verdict == Verdict.QUARANTINE:
        assert not engine.is_fallback_candidate(rssi, has_internet)


@settings(max_examples=100)
@given(current=rssi_values, delta=st.integers(min_value=-50, max_value=50),
       threshold=st.integers(min_value=5, max_value=30))
def test_property_significantly_better(current, delta, threshold):
    """
    Property: Roaming Hysteresis

    A candidate is significantly better exactly when it beats the current
    signal by more than the threshold.
    """
    engine = DecisionEngine()
    assert engine.is_significantly_better(current + delta, current, threshold) == (delta > threshold)


def test_significantly_better_examples():
    engine = DecisionEngine()

    assert engine.is_significantly_better(-50, -65, threshold=10)
    assert not engine.is_significantly_better(-58, -65, threshold=10)
    assert not engine.is_significantly_better(-55, -65, threshold=10)


@settings(max_examples=100)
@given(sensitivity=st.integers(min_value=0, max_value=100))
def test_property_drop_threshold_range(sensitivity):
    """
    Property: Drop Threshold Range

    Sensitivity maps monotonically into -90..-50 dBm.
    """
    threshold = drop_threshold(sensitivity)

    assert -90 <= threshold <= -50
    if sensitivity < 100:
        assert drop_threshold(sensitivity + 1) >= threshold


def test_frequency_band():
    assert frequency_band(2412) == "2.4GHz"
    assert frequency_band(4900) == "2.4GHz"
    assert frequency_band(4901) == "5GHz"
    assert frequency_band(5180) == "5GHz"
    assert frequency_band(0) == "2.4GHz"


class TestBandUpgrade:
    """Test 5GHz access point search."""

    def test_finds_same_network_on_5ghz(self):
        engine = DecisionEngine()
        results = [
            ScanResult(bssid="aa:bb:cc:dd:ee:02", ssid="Other", frequency=5180, level=-40),
            ScanResult(bssid="aa:bb:cc:dd:ee:03", ssid="HomeNet", frequency=5180, level=-65),
        ]

        target = engine.find_band_upgrade("HomeNet", results)

        assert target is not None
        assert target.bssid == "aa:bb:cc:dd:ee:03"

    def test_rejects_weak_5ghz(self):
        engine = DecisionEngine()
        results = [ScanResult(bssid="aa:bb:cc:dd:ee:03", ssid="HomeNet", frequency=5180, level=-75)]

        assert engine.find_band_upgrade("HomeNet", results) is None

    def test_rejects_level_at_cutoff(self):
        engine = DecisionEngine()
        results = [ScanResult(bssid="aa:bb:cc:dd:ee:03", ssid="HomeNet", frequency=5180, level=-70)]

        assert engine.find_band_upgrade("HomeNet", results) is None

    def test_rejects_2ghz(self):
        engine = DecisionEngine()
        results = [ScanResult(bssid="aa:bb:cc:dd:ee:03", ssid="HomeNet", frequency=2462, level=-40)]

        assert engine.find_band_upgrade("HomeNet", results) is None

    def test_ignores_quotes_around_ssid(self):
        engine = DecisionEngine()
        results = [ScanResult(bssid="aa:bb:cc:dd:ee:03", ssid="HomeNet", frequency=5500, level=-60)]

        assert engine.find_band_upgrade('"HomeNet"', results) is not None

    def test_no_ssid(self):
        engine = DecisionEngine()
        results = [ScanResult(bssid="aa:bb:cc:dd:ee:03", ssid="HomeNet", frequency=5500, level=-60)]

        assert engine.find_band_upgrade(None, results) is None

    def test_malformed_scan_data_means_no_candidate(self):
        engine = DecisionEngine()
        results = [
            {"bssid": "", "ssid": "HomeNet", "frequency": 5180, "level": -60},
            {"ssid": "HomeNet", "frequency": 5180},
            {"bssid": "aa:bb:cc:dd:ee:03", "ssid": "HomeNet", "frequency": -1, "level": -60},
        ]

        assert engine.find_band_upgrade("HomeNet", results) is None
        assert engine.find_band_upgrade("HomeNet", None) is None


def test_coerce_scan_results_keeps_valid_entries():
    raw = [
        {"bssid": "aa:bb:cc:dd:ee:03", "ssid": "HomeNet", "frequency": 5180, "level": -60},
        {"bssid": "aa:bb:cc:dd:ee:04", "frequency": 2412, "level": 15},
        ScanResult(bssid="aa:bb:cc:dd:ee:05", ssid="Office", frequency=2412, level=-50),
    ]

    cleaned = coerce_scan_results(raw)

    assert [r.bssid for r in cleaned] == ["aa:bb:cc:dd:ee:03", "aa:bb:cc:dd:ee:05"]


class TestRoamSelection:
    """Test roam target selection and tier rules."""

    saved = [
        SavedNetwork(ssid="HomeNet"),
        SavedNetwork(ssid="Office", preferred=True),
        SavedNetwork(ssid="PhoneHotspot"),
    ]

    def select(self, scan_results, current_rssi=-80, current_is_hotspot=False,
               thresholds=None, probation=None, current_bssid="aa:bb:cc:dd:ee:01"):
        engine = DecisionEngine(probation)
        return engine.select_roam_target(
            current_bssid=current_bssid,
            current_rssi=current_rssi,
            current_is_hotspot=current_is_hotspot,
            scan_results=scan_results,
            saved_networks=self.saved,
            thresholds=thresholds or Thresholds(),
            now=1000.0
        )

    def test_strong_link_does_not_roam(self):
        results = [ScanResult(bssid="aa:bb:cc:dd:ee:02", ssid="HomeNet", frequency=2412, level=-30)]

        assert self.select(results, current_rssi=-60) is None

    def test_weak_link_roams_to_better_router(self):
        results = [ScanResult(bssid="aa:bb:cc:dd:ee:02", ssid="HomeNet", frequency=2412, level=-55)]

        decision = self.select(results)

        assert decision == RoamDecision(target=results[0], to_hotspot=False, skipped=False)

    def test_candidate_must_clear_min_signal_diff(self):
        results = [ScanResult(bssid="aa:bb:cc:dd:ee:02", ssid="HomeNet", frequency=2412, level=-72)]

        assert self.select(results, thresholds=Thresholds(min_signal_diff=10)) is None

    def test_unsaved_network_is_ignored(self):
        results = [ScanResult(bssid="aa:bb:cc:dd:ee:02", ssid="Stranger", frequency=2412, level=-40)]

        assert self.select(results) is None

    def test_current_bssid_is_ignored(self):
        results = [ScanResult(bssid="aa:bb:cc:dd:ee:01", ssid="HomeNet", frequency=5180, level=-40)]

        assert self.select(results) is None

    def test_quarantined_candidate_is_ignored(self):
        probation = ProbationStore()
        probation.add("aa:bb:cc:dd:ee:02", now=1000.0)
        results = [ScanResult(bssid="aa:bb:cc:dd:ee:02", ssid="HomeNet", frequency=2412, level=-40)]

        assert self.select(results, probation=probation) is None

    def test_preferred_network_wins_over_stronger(self):
        results = [
            ScanResult(bssid="aa:bb:cc:dd:ee:02", ssid="HomeNet", frequency=2412, level=-40),
            ScanResult(bssid="aa:bb:cc:dd:ee:03", ssid="Office", frequency=2412, level=-60),
        ]

        decision = self.select(results)

        assert decision.target.ssid == "Office"

    def test_router_wins_over_hotspot(self):
        results = [
            ScanResult(bssid="aa:bb:cc:dd:ee:02", ssid="PhoneHotspot", frequency=2412, level=-35, is_hotspot=True),
            ScanResult(bssid="aa:bb:cc:dd:ee:03", ssid="HomeNet", frequency=2412, level=-60),
        ]

        decision = self.select(results)

        assert decision.target.ssid == "HomeNet"
        assert not decision.to_hotspot

    def test_only_hotspot_switches_when_enabled(self):
        results = [
            ScanResult(bssid="aa:bb:cc:dd:ee:02", ssid="PhoneHotspot", frequency=2412, level=-45, is_hotspot=True),
        ]

        decision = self.select(results, thresholds=Thresholds(hotspot_switching_enabled=True))

        assert decision.target.ssid == "PhoneHotspot"
        assert decision.to_hotspot
        assert not decision.skipped

    def test_only_hotspot_is_skipped_when_disabled(self):
        results = [
            ScanResult(bssid="aa:bb:cc:dd:ee:02", ssid="PhoneHotspot", frequency=2412, level=-45, is_hotspot=True),
        ]

        decision = self.select(results, thresholds=Thresholds(hotspot_switching_enabled=False))

        assert decision.skipped
        assert decision.target.ssid == "PhoneHotspot"

    def test_hotspot_to_hotspot_is_same_tier(self):
        results = [
            ScanResult(bssid="aa:bb:cc:dd:ee:02", ssid="PhoneHotspot", frequency=2412, level=-45, is_hotspot=True),
        ]

        decision = self.select(
            results,
            current_is_hotspot=True,
            thresholds=Thresholds(hotspot_switching_enabled=False)
        )

        assert not decision.skipped


@settings(max_examples=100)
@given(
    results=st.lists(scan_result(), max_size=8),
    current_rssi=st.integers(min_value=-100, max_value=-30),
    sensitivity=st.integers(min_value=0, max_value=100),
    min_signal_diff=st.integers(min_value=5, max_value=30)
)
def test_property_roam_target_is_eligible(results, current_rssi, sensitivity, min_signal_diff):
    """
    Property: Roam Target Eligibility

    Any chosen target is a saved network, not the current access point, and
    clears the hysteresis; nothing is chosen while the link is strong.
    """
    engine = DecisionEngine()
    thresholds = Thresholds(sensitivity=sensitivity, min_signal_diff=min_signal_diff)
    saved = [SavedNetwork(ssid="HomeNet"), SavedNetwork(ssid="PhoneHotspot")]

    decision = engine.select_roam_target(
        current_bssid="aa:bb:cc:dd:ee:00",
        current_rssi=current_rssi,
        current_is_hotspot=False,
        scan_results=results,
        saved_networks=saved,
        thresholds=thresholds
    )

    if current_rssi >= drop_threshold(sensitivity):
        assert decision is None
        return

    if decision is not None:
        target = decision.target
        assert target.ssid in ("HomeNet", "PhoneHotspot")
        assert target.bssid != "aa:bb:cc:dd:ee:00"
        assert target.level > current_rssi + min_signal_diff
        assert decision.to_hotspot == target.is_hotspot
