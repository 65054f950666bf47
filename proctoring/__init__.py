"""Detection-to-event proctoring pipeline."""

from proctoring.engine import RuleEngine
from proctoring.errors import CaptureDenied, ModelNotReady, ProctorError, VideoNotReady
from proctoring.events import Event, EventKind
from proctoring.monitor import ProctorMonitor
from proctoring.report import ProctoringReport, build_report, export_report, render_csv
from proctoring.sampler import Sampler, TickOutcome
from proctoring.scoring import compute_score
from proctoring.session import Session
from proctoring.session_log import SessionLog
from proctoring.settings import ProctorSettings

__all__ = [
    "CaptureDenied",
    "Event",
    "EventKind",
    "ModelNotReady",
    "ProctorError",
    "ProctorMonitor",
    "ProctorSettings",
    "ProctoringReport",
    "RuleEngine",
    "Sampler",
    "Session",
    "SessionLog",
    "TickOutcome",
    "VideoNotReady",
    "build_report",
    "compute_score",
    "export_report",
    "render_csv",
]
