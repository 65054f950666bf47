"""Rule engine: fans a frame context out to every rule and logs the results."""

from __future__ import annotations

from types import MappingProxyType
from typing import Callable, Mapping

from core.logging import logger
from proctoring.events import Event, iso_timestamp
from proctoring.rules import AbsenceRule, Rule, build_default_rules
from proctoring.session_log import SessionLog
from proctoring.settings import ProctorSettings
from vision.detections import FrameContext


PresenceCallback = Callable[[bool], None]


class RuleEngine:
    """Evaluates independent rules and is the only writer of a session log."""

    def __init__(
        self,
        log: SessionLog,
        settings: ProctorSettings | None = None,
        rules: Mapping[str, Rule] | None = None,
    ) -> None:
        self._log = log
        self._rules: dict[str, Rule] = dict(rules) if rules is not None else build_default_rules(settings)
        self._presence_listeners: list[PresenceCallback] = []
        self._face_detected = False

    @property
    def rules(self) -> Mapping[str, Rule]:
        return MappingProxyType(self._rules)

    @property
    def face_detected(self) -> bool:
        """Whether a person was visible at the last presence check."""

        return self._face_detected

    def arm(self, now_ms: int) -> None:
        """Start presence timers at the beginning of monitoring."""

        for rule in self._rules.values():
            if isinstance(rule, AbsenceRule):
                rule.arm(now_ms)

    def reset(self) -> None:
        for rule in self._rules.values():
            rule.reset()
        self._set_face_detected(False)

    def add_presence_listener(self, callback: PresenceCallback) -> None:
        if callback not in self._presence_listeners:
            self._presence_listeners.append(callback)

    def remove_presence_listener(self, callback: PresenceCallback) -> None:
        if callback in self._presence_listeners:
            self._presence_listeners.remove(callback)

    def evaluate(self, context: FrameContext, now_ms: int) -> list[Event]:
        """Run every rule against ``context`` and append emitted events."""

        timestamp = iso_timestamp(context.captured_at)
        emitted: list[Event] = []
        for rule_id, rule in self._rules.items():
            for finding in rule.evaluate(context, now_ms):
                event = Event(timestamp=timestamp, kind=finding.kind, detail=finding.detail)
                self._log.append(event)
                emitted.append(event)
                logger.debug("[RULES] %s fired %s (%s)", rule_id, finding.kind.value, finding.detail)
            if isinstance(rule, AbsenceRule):
                self._set_face_detected(rule.face_detected)
        return emitted

    def _set_face_detected(self, value: bool) -> None:
        if value == self._face_detected:
            return
        self._face_detected = value
        logger.info("[RULES] face detected -> %s", value)
        for callback in list(self._presence_listeners):
            try:
                callback(value)
            except Exception:
                logger.exception("[RULES] Presence listener failed")
