"""Behavioral rules evaluated against each sampled frame.

Every rule owns its own :class:`RuleState` and decides independently whether
the current frame should produce findings. Cooldowns are measured from the
rule's own last firing, so one rule's suppression never affects another.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from proctoring.events import EventKind
from proctoring.settings import ProctorSettings
from vision.detections import FrameContext


@dataclass(frozen=True)
class RuleFinding:
    """Event produced by a rule before it is stamped and logged."""

    kind: EventKind
    detail: str | None = None


@dataclass
class RuleState:
    """Mutable cooldown record owned by exactly one rule."""

    cooldown_ms: int
    last_fired_ms: int | None = None

    def is_eligible(self, now_ms: int) -> bool:
        if self.last_fired_ms is None:
            return True
        return (now_ms - self.last_fired_ms) >= self.cooldown_ms

    def mark_fired(self, now_ms: int) -> None:
        self.last_fired_ms = now_ms

    def reset(self) -> None:
        self.last_fired_ms = None


class Rule(Protocol):
    """Common capability shared by all behavioral rules."""

    rule_id: str
    state: RuleState

    def evaluate(self, context: FrameContext, now_ms: int) -> list[RuleFinding]:
        ...

    def reset(self) -> None:
        ...


class AbsenceRule:
    """Reports a missing candidate once per continuous absence.

    The gate is the time since presence was last confirmed (or since the rule
    was armed). Seeing a person re-arms the rule and sets ``face_detected``.
    """

    rule_id = "absence"

    def __init__(self, absence_after_ms: int = 5000, person_label: str = "person") -> None:
        self.state = RuleState(cooldown_ms=absence_after_ms)
        self._person_label = person_label
        self._last_present_ms: int | None = None
        self._reported = False
        self.face_detected = False

    def arm(self, now_ms: int) -> None:
        """Start the presence timer, typically when monitoring starts."""

        self._last_present_ms = now_ms
        self._reported = False

    def evaluate(self, context: FrameContext, now_ms: int) -> list[RuleFinding]:
        if self._last_present_ms is None:
            self.arm(now_ms)

        if context.with_label(self._person_label):
            self._last_present_ms = now_ms
            self._reported = False
            self.face_detected = True
            return []

        if self._reported:
            return []
        if (now_ms - self._last_present_ms) < self.state.cooldown_ms:
            return []

        self._reported = True
        self.face_detected = False
        self.state.mark_fired(now_ms)
        return [RuleFinding(EventKind.NO_FACE)]

    def reset(self) -> None:
        self.state.reset()
        self._last_present_ms = None
        self._reported = False
        self.face_detected = False


class MultipleOccupantsRule:
    rule_id = "multiple_occupants"

    def __init__(self, cooldown_ms: int = 5000, person_label: str = "person") -> None:
        self.state = RuleState(cooldown_ms=cooldown_ms)
        self._person_label = person_label

    def evaluate(self, context: FrameContext, now_ms: int) -> list[RuleFinding]:
        count = len(context.with_label(self._person_label))
        if count <= 1 or not self.state.is_eligible(now_ms):
            return []
        self.state.mark_fired(now_ms)
        return [RuleFinding(EventKind.MULTIPLE_FACES, detail=str(count))]

    def reset(self) -> None:
        self.state.reset()


class ProhibitedObjectRule:
    """Reports prohibited objects, one finding per matching detection.

    Two phones in one frame yield two findings. The cooldown window is shared
    by all labels: once any prohibited object is reported, none is reported
    again until the window elapses.
    """

    rule_id = "prohibited_object"

    def __init__(self, labels: tuple[str, ...], cooldown_ms: int = 2000) -> None:
        self.state = RuleState(cooldown_ms=cooldown_ms)
        self._labels = frozenset(labels)

    def evaluate(self, context: FrameContext, now_ms: int) -> list[RuleFinding]:
        if not self.state.is_eligible(now_ms):
            return []

        found = [
            detection.label
            for detection in context.detections
            if detection.label in self._labels
        ]
        if not found:
            return []

        self.state.mark_fired(now_ms)
        return [RuleFinding(EventKind.SUSPICIOUS_ITEM, detail=label) for label in found]

    def reset(self) -> None:
        self.state.reset()


class GazeRule:
    """Flags a single candidate whose box center drifts off the middle band."""

    rule_id = "gaze"

    def __init__(
        self,
        min_x: float = 0.35,
        max_x: float = 0.65,
        cooldown_ms: int = 5000,
        person_label: str = "person",
    ) -> None:
        self.state = RuleState(cooldown_ms=cooldown_ms)
        self._min_x = min_x
        self._max_x = max_x
        self._person_label = person_label

    def is_looking_away(self, context: FrameContext) -> bool:
        persons = context.with_label(self._person_label)
        if len(persons) != 1 or context.frame_width <= 0:
            return False
        normalized_x = persons[0].center_x / context.frame_width
        return normalized_x < self._min_x or normalized_x > self._max_x

    def evaluate(self, context: FrameContext, now_ms: int) -> list[RuleFinding]:
        if not self.is_looking_away(context) or not self.state.is_eligible(now_ms):
            return []
        self.state.mark_fired(now_ms)
        return [RuleFinding(EventKind.LOOKING_AWAY)]

    def reset(self) -> None:
        self.state.reset()


class EyesClosedRule:
    """Box-height heuristic for closed eyes.

    Has no cooldown and fires on every qualifying frame.
    """

    rule_id = "eyes_closed"

    def __init__(self, max_height_ratio: float = 0.10, person_label: str = "person") -> None:
        self.state = RuleState(cooldown_ms=0)
        self._max_height_ratio = max_height_ratio
        self._person_label = person_label

    def evaluate(self, context: FrameContext, now_ms: int) -> list[RuleFinding]:
        persons = context.with_label(self._person_label)
        if len(persons) != 1 or context.frame_height <= 0:
            return []
        if (persons[0].height / context.frame_height) >= self._max_height_ratio:
            return []
        self.state.mark_fired(now_ms)
        return [RuleFinding(EventKind.EYES_CLOSED)]

    def reset(self) -> None:
        self.state.reset()


def build_default_rules(settings: ProctorSettings | None = None) -> dict[str, Rule]:
    """Return the standard rule set keyed by rule id."""

    settings = settings or ProctorSettings()
    person = settings.person_label
    rules: list[Rule] = [
        AbsenceRule(settings.absence_after_ms, person_label=person),
        MultipleOccupantsRule(settings.multiple_faces_cooldown_ms, person_label=person),
        ProhibitedObjectRule(settings.prohibited_labels, settings.prohibited_cooldown_ms),
        GazeRule(
            settings.gaze_min_x,
            settings.gaze_max_x,
            settings.looking_away_cooldown_ms,
            person_label=person,
        ),
        EyesClosedRule(settings.eyes_closed_max_height_ratio, person_label=person),
    ]
    return {rule.rule_id: rule for rule in rules}
