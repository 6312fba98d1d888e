"""Card selector understood by the stub reader."""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional


@dataclass(frozen=True)
class StubCardSelector:
    """Selection criteria for a stub card.

    Attributes:
        power_on_data_regex: Regular expression the hex ATR must fully match.
        aid: Hex AID to SELECT once the ATR is accepted.
        successful_selection_status_codes: Status codes accepted for the SELECT.
    """

    power_on_data_regex: Optional[str] = None
    aid: Optional[str] = None
    successful_selection_status_codes: FrozenSet[int] = field(
        default_factory=lambda: frozenset({0x9000})
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "powerOnDataRegex": self.power_on_data_regex,
            "aid": self.aid,
            "successfulSelectionStatusCodes": sorted(
                f"{code:04X}" for code in self.successful_selection_status_codes
            ),
        }
