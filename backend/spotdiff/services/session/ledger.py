from dataclasses import dataclass
from typing import Dict, Optional
import time


@dataclass(frozen=True)
class Claim:
    image_id: str
    difference_id: str
    player_id: str
    timestamp: float


@dataclass(frozen=True)
class ClaimResult:
    accepted: bool
    claim: Claim


class DifferenceLedger:
    """First-claimant-wins record of found differences, per image.

    Callers serialize access through the owning room's lock.
    """

    def __init__(self):
        self._claims: Dict[str, Dict[str, Claim]] = {}

    def claim(self, image_id: str, difference_id: str, player_id: str, timestamp: Optional[float] = None) -> ClaimResult:
        found = self._claims.setdefault(image_id, {})
        existing = found.get(difference_id)
        if existing:
            return ClaimResult(accepted=False, claim=existing)
        claim = Claim(image_id, difference_id, player_id, timestamp if timestamp is not None else time.time())
        found[difference_id] = claim
        return ClaimResult(accepted=True, claim=claim)

    def claimed_count(self, image_id: str) -> int:
        return len(self._claims.get(image_id, {}))

    def is_complete(self, image) -> bool:
        """True once every difference of the image is claimed.

        An image without differences is never complete; only the timer moves past it.
        """
        total = len(image.differences)
        return total > 0 and self.claimed_count(image.id) >= total

    def clear(self) -> None:
        self._claims.clear()
