import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from utils.helpers import as_utc, utcnow, isoformat

logger = logging.getLogger(__name__)

TAB_SWITCH = "TAB_SWITCH"
FULLSCREEN_EXIT = "FULLSCREEN_EXIT"


@dataclass
class TelemetrySnapshot:
    tab_switches: int
    fullscreen_exits: int

    def to_dict(self):
        return {"tabSwitches": self.tab_switches, "fullscreenExits": self.fullscreen_exits}


@dataclass
class TelemetryContext:
    """Tamper counters for a single attempt, owned by that attempt's session."""

    attempt_id: Optional[int] = None
    tab_switches: int = 0
    fullscreen_exits: int = 0
    violations: List[dict] = field(default_factory=list)
    frozen: bool = False

    @classmethod
    def from_attempt(cls, attempt):
        """Seed counters from a resumed attempt's persisted checkpoint."""
        return cls(
            attempt_id=attempt.get("id"),
            tab_switches=attempt.get("tabSwitches") or 0,
            fullscreen_exits=attempt.get("fullscreenExits") or 0,
        )

    def snapshot(self):
        return TelemetrySnapshot(self.tab_switches, self.fullscreen_exits)


def risk_level(tab_switches, fullscreen_exits):
    if tab_switches > 5 or fullscreen_exits > 2:
        return "high"
    if tab_switches > 2 or fullscreen_exits > 0:
        return "medium"
    if tab_switches > 0:
        return "low"
    return "none"


class IntegrityTracker:
    """Counts visible->hidden and fullscreen->windowed transitions for one attempt.

    Counters are advisory: the tracker warns, and asks for fullscreen again,
    but never blocks or submits the attempt. Once frozen it ignores signals.
    """

    def __init__(
        self,
        context: TelemetryContext,
        debounce_seconds: float = 0.5,
        refullscreen_delay: float = 1.0,
        schedule: Optional[Callable] = None,
        request_fullscreen: Optional[Callable] = None,
        on_warning: Optional[Callable] = None,
        now_fn: Callable = utcnow,
    ):
        self.context = context
        self.debounce_seconds = debounce_seconds
        self.refullscreen_delay = refullscreen_delay
        self.schedule = schedule
        self.request_fullscreen = request_fullscreen
        self.on_warning = on_warning
        self.now_fn = now_fn

        self._visible = True
        self._fullscreen = True
        self._last_event = {TAB_SWITCH: None, FULLSCREEN_EXIT: None}

    @property
    def listening(self):
        return not self.context.frozen

    def observe_visibility(self, visible):
        """Feed a 'document is visible' signal. Returns True if a tab switch was counted."""
        previous, self._visible = self._visible, bool(visible)
        if not self.listening or visible or not previous:
            return False
        if self._debounced(TAB_SWITCH):
            return False
        self.context.tab_switches += 1
        self._record(TAB_SWITCH, self.context.tab_switches)
        return True

    def observe_fullscreen(self, fullscreen):
        """Feed a 'viewport is fullscreen' signal. Returns True if an exit was counted."""
        previous, self._fullscreen = self._fullscreen, bool(fullscreen)
        if not self.listening or fullscreen or not previous:
            return False
        if self._debounced(FULLSCREEN_EXIT):
            return False
        self.context.fullscreen_exits += 1
        self._record(FULLSCREEN_EXIT, self.context.fullscreen_exits)
        if self.schedule is not None and self.request_fullscreen is not None:
            self.schedule(self.refullscreen_delay, self._refullscreen)
        return True

    def freeze(self):
        """Stop listening and return the final counters."""
        self.context.frozen = True
        return self.context.snapshot()

    def risk_level(self):
        return risk_level(self.context.tab_switches, self.context.fullscreen_exits)

    def _refullscreen(self):
        if not self.listening:
            return
        try:
            self.request_fullscreen()
        except Exception as e:  # browsers may refuse without a user gesture
            logger.warning("Fullscreen request refused: %s", e)

    def _debounced(self, kind):
        now = as_utc(self.now_fn())
        last = self._last_event[kind]
        self._last_event[kind] = now
        return last is not None and (now - last).total_seconds() < self.debounce_seconds

    def _record(self, kind, count):
        violation = {"type": kind, "at": isoformat(self.now_fn()), "count": count}
        self.context.violations.append(violation)
        logger.info("Attempt %s integrity event %s (#%d)", self.context.attempt_id, kind, count)
        if self.on_warning is not None:
            self.on_warning(kind, count)
