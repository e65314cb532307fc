"""
Status Ladder

Program thresholds and the status ladder arithmetic shared by the ledger,
the cycle segmenter, the level-up detector and the rollover engine.

The XP ladder is Explorer < Silver < Gold < Platinum. Ultimate sits on top of
Platinum and is tracked on a separate UXP counter, so every helper here maps
Ultimate down to Platinum before touching XP thresholds.
"""
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from skystatus.core.config import Settings, settings as default_settings
from skystatus.core.exceptions import ConfigurationError
from skystatus.models import StatusLevel


XP_LADDER = (
    StatusLevel.EXPLORER,
    StatusLevel.SILVER,
    StatusLevel.GOLD,
    StatusLevel.PLATINUM,
)


@dataclass(frozen=True)
class ProgramRules:
    """
    Thresholds and caps of the loyalty program.

    ``thresholds`` maps every XP ladder status to the cumulative XP needed to
    attain it (Explorer is always 0). ``retain_threshold`` is what the top
    status needs to requalify. ``rollover_cap`` bounds the surplus carried
    into the next cycle.
    """
    thresholds: Mapping[StatusLevel, int]
    retain_threshold: int
    rollover_cap: int
    anniversary_month: int = 11
    year_start_month: int = 11
    ultimate_uxp_threshold: int = 900
    uxp_yearly_cap: int = 1800
    uxp_rollover_max: int = 900

    def __post_init__(self):
        missing = [s.value for s in XP_LADDER if s not in self.thresholds]
        if missing:
            raise ConfigurationError(f"Missing thresholds for: {', '.join(missing)}", field="thresholds")
        if self.thresholds[StatusLevel.EXPLORER] != 0:
            raise ConfigurationError("Explorer threshold must be 0", field="thresholds")
        values = [self.thresholds[s] for s in XP_LADDER]
        if any(b <= a for a, b in zip(values, values[1:])):
            raise ConfigurationError("Status thresholds must be strictly increasing", field="thresholds")
        if self.retain_threshold <= 0:
            raise ConfigurationError("Retain threshold must be positive", field="retain_threshold")
        if self.rollover_cap < 0:
            raise ConfigurationError("Rollover cap cannot be negative", field="rollover_cap")
        for name in ("anniversary_month", "year_start_month"):
            if not 1 <= getattr(self, name) <= 12:
                raise ConfigurationError(f"{name} must be a calendar month (1-12)", field=name)
        if self.ultimate_uxp_threshold <= 0 or self.uxp_yearly_cap < self.ultimate_uxp_threshold:
            raise ConfigurationError("UXP cap must be at least the Ultimate threshold", field="uxp_yearly_cap")
        if self.uxp_rollover_max < 0:
            raise ConfigurationError("UXP rollover cannot be negative", field="uxp_rollover_max")

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "ProgramRules":
        config = config or default_settings
        return cls(
            thresholds={
                StatusLevel.EXPLORER: 0,
                StatusLevel.SILVER: config.SILVER_THRESHOLD,
                StatusLevel.GOLD: config.GOLD_THRESHOLD,
                StatusLevel.PLATINUM: config.PLATINUM_THRESHOLD,
            },
            retain_threshold=config.PLATINUM_RETAIN_THRESHOLD,
            rollover_cap=config.ROLLOVER_CAP,
            anniversary_month=config.DEFAULT_ANNIVERSARY_MONTH,
            year_start_month=config.QUALIFICATION_YEAR_START_MONTH,
            ultimate_uxp_threshold=config.ULTIMATE_UXP_THRESHOLD,
            uxp_yearly_cap=config.UXP_YEARLY_CAP,
            uxp_rollover_max=config.UXP_ROLLOVER_MAX,
        )

    @classmethod
    def custom(
        cls,
        silver: int,
        gold: int,
        platinum: int,
        retain: Optional[int] = None,
        rollover_cap: Optional[int] = None,
        **kwargs,
    ) -> "ProgramRules":
        """Build rules with explicit thresholds (retain defaults to the Platinum threshold)."""
        return cls(
            thresholds={
                StatusLevel.EXPLORER: 0,
                StatusLevel.SILVER: silver,
                StatusLevel.GOLD: gold,
                StatusLevel.PLATINUM: platinum,
            },
            retain_threshold=retain if retain is not None else platinum,
            rollover_cap=rollover_cap if rollover_cap is not None else default_settings.ROLLOVER_CAP,
            **kwargs,
        )

    @property
    def top_status(self) -> StatusLevel:
        return XP_LADDER[-1]

    @property
    def utilisation_ceiling(self) -> int:
        """XP beyond which nothing can be carried any more."""
        return self.thresholds[self.top_status] + self.rollover_cap

    def as_dict(self) -> Dict[str, int]:
        return {s.value: self.thresholds[s] for s in XP_LADDER}


def xp_status(status: StatusLevel) -> StatusLevel:
    """Map a status onto the XP ladder (Ultimate counts as Platinum)."""
    if status == StatusLevel.ULTIMATE:
        return StatusLevel.PLATINUM
    return status


def higher_status(a: StatusLevel, b: StatusLevel) -> StatusLevel:
    return a if a.rank >= b.rank else b


def next_status(status: StatusLevel) -> Optional[StatusLevel]:
    """Next status on the XP ladder, None at the top."""
    index = XP_LADDER.index(xp_status(status))
    if index + 1 < len(XP_LADDER):
        return XP_LADDER[index + 1]
    return None


def previous_status(status: StatusLevel) -> StatusLevel:
    index = XP_LADDER.index(xp_status(status))
    return XP_LADDER[max(0, index - 1)]


def attain_threshold(status: StatusLevel, rules: ProgramRules) -> int:
    return rules.thresholds[xp_status(status)]


def requalification_threshold(status: StatusLevel, rules: ProgramRules) -> int:
    """XP needed within a cycle to keep ``status`` for another year."""
    status = xp_status(status)
    if status == rules.top_status:
        return rules.retain_threshold
    return rules.thresholds[status]


def next_threshold(status: StatusLevel, rules: ProgramRules) -> int:
    """
    The boundary a holder of ``status`` is working towards.

    That is the next status's attain threshold, or the retain threshold once
    the top of the ladder has been reached.
    """
    upcoming = next_status(status)
    if upcoming is None:
        return rules.retain_threshold
    return rules.thresholds[upcoming]


def status_from_xp(xp: int, rules: ProgramRules) -> StatusLevel:
    """Highest XP ladder status whose attain threshold is met by ``xp``."""
    reached = StatusLevel.EXPLORER
    for status in XP_LADDER:
        if xp >= rules.thresholds[status]:
            reached = status
    return reached


def xp_to_next(status: StatusLevel, xp: int, rules: ProgramRules) -> int:
    return max(0, next_threshold(status, rules) - xp)


def soft_landing(held: StatusLevel, cycle_xp: int, rules: ProgramRules) -> StatusLevel:
    """
    Status for the next cycle after an anniversary close.

    Requalifying keeps the held status. Falling short drops exactly one
    level, never more, and Explorer stays Explorer.
    """
    held = xp_status(held)
    if cycle_xp >= requalification_threshold(held, rules):
        return held
    return previous_status(held)
