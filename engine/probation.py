"""
Probation store for quarantined access points.

A network judged to be a "zombie" (strong signal, no internet) is kept out
of rotation for a fixed cooldown. Expired entries are purged lazily when
they are looked up; nothing sweeps the store in the background.
"""

from typing import Dict, List, Optional, Tuple
from threading import Lock
import time


PROBATION_DURATION_SECONDS = 120


class ProbationStore:
    """
    Time-keyed quarantine list mapping BSSID to expiry timestamp.

    All timestamps are seconds since the epoch (``time.time()``). Every
    method accepts an explicit ``now`` so callers can drive the clock.

    Attributes:
        duration: Quarantine length in seconds
        _entries: Dictionary mapping BSSID to expiry timestamp
        _lock: Thread lock for safe concurrent access
    """
    
    def __init__(self, duration: float = PROBATION_DURATION_SECONDS):
        self.duration = duration
        self._entries: Dict[str, float] = {}
        self._lock = Lock()
    
    def add(self, bssid: str, now: Optional[float] = None) -> float:
        """
        Put an access point under probation.
        
        Re-adding an entry that is already quarantined resets its expiry.
        
        Args:
            bssid: Access point identifier
            now: Current time (default: time.time())
        
        Returns:
            The new expiry timestamp
        """
        now = time.time() if now is None else now
        expiry = now + self.duration
        with self._lock:
            self._entries[bssid] = expiry
        return expiry
    
    def is_under_probation(self, bssid: str, now: Optional[float] = None) -> bool:
        """
        Check whether an access point is still quarantined.
        
        An entry is valid while ``now <= expiry``. Once it has expired it is
        removed and False is returned.
        """
        now = time.time() if now is None else now
        with self._lock:
            expiry = self._entries.get(bssid)
            if expiry is None:
                return False
            if now > expiry:
                del self._entries[bssid]
                return False
            return True
    
    def snapshot(self, now: Optional[float] = None) -> List[Tuple[str, int]]:
        """
        Get remaining quarantine time for every live entry.
        
        Read-only: expired entries are skipped but not purged.
        
        Returns:
            List of (bssid, seconds_remaining) tuples
        """
        now = time.time() if now is None else now
        with self._lock:
            return [
                (bssid, max(0, int(expiry - now)))
                for bssid, expiry in self._entries.items()
                if expiry - now > 0
            ]
    
    def release(self, bssid: str) -> bool:
        """
        Remove an entry before it expires (explicit retry).
        
        Returns:
            True if the entry existed
        """
        with self._lock:
            return self._entries.pop(bssid, None) is not None
    
    def expiry_of(self, bssid: str) -> Optional[float]:
        """Expiry timestamp of an entry, or None if absent. Expired entries are not purged."""
        with self._lock:
            return self._entries.get(bssid)
    
    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()
    
    def __contains__(self, bssid: str) -> bool:
        with self._lock:
            return bssid in self._entries
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
