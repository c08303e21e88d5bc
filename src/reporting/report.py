"""Activation reporting."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from activation.machine import ActivationOutcome, OutcomeStatus


@dataclass
class ProgressEvent:
    """A progress message as it was shown."""
    message: str
    at: datetime


@dataclass
class ActivationReport:
    """Collects progress and the outcome of one activation attempt.

    Acts as the presentation sink: pass report.progress to the state
    machine, then report.finish(outcome).
    """
    manifest_path: Path
    namespace: str = ''
    name: str = ''
    echo: Optional[Callable[[str], None]] = None
    events: list[ProgressEvent] = field(default_factory=list)
    outcome: Optional[ActivationOutcome] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def start(self):
        """Mark activation start."""
        self.started_at = datetime.now()

    def progress(self, message: str):
        """Record (and optionally echo) a progress message."""
        self.events.append(ProgressEvent(message=message, at=datetime.now()))
        if self.echo is not None:
            self.echo(message)

    def finish(self, outcome: ActivationOutcome):
        """Record the terminal outcome. Only the first call counts."""
        if self.outcome is not None:
            return
        self.outcome = outcome
        self.finished_at = datetime.now()

    @property
    def success(self) -> bool:
        return self.outcome is not None and self.outcome.success

    @property
    def duration(self) -> float:
        if self.finished_at and self.started_at:
            return (self.finished_at - self.started_at).total_seconds()
        return 0.0

    def to_dict(self) -> dict:
        """Return report as dictionary for JSON output."""
        result = {
            'namespace': self.namespace,
            'name': self.name,
            'manifest': str(self.manifest_path),
            'success': self.success,
            'status': self.outcome.status.value if self.outcome else None,
            'duration_seconds': round(self.duration, 1),
            'progress': [e.message for e in self.events],
        }

        # Include error message on failure
        if self.outcome is not None and self.outcome.message:
            result['error'] = self.outcome.message

        return result

    def write(self, report_dir: Path) -> tuple[Path, Path]:
        """Write JSON and markdown reports.

        Returns:
            (json_path, markdown_path)
        """
        report_dir.mkdir(parents=True, exist_ok=True)
        json_path = self._report_filename(report_dir, 'json')
        with open(json_path, 'w', encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

        md_path = self._report_filename(report_dir, 'md')
        with open(md_path, 'w', encoding="utf-8") as f:
            f.write(self._markdown())
        return json_path, md_path

    def _markdown(self) -> str:
        status = self.outcome.status.value.upper() if self.outcome else 'UNFINISHED'
        lines = [
            f"# {self.namespace}/{self.name}",
            "",
            f"**Manifest**: {self.manifest_path}",
            f"**Status**: {status}",
            f"**Date**: {self.started_at.strftime('%Y-%m-%d %H:%M:%S') if self.started_at else 'N/A'}",
            f"**Duration**: {self.duration:.1f}s",
        ]
        if self.outcome is not None and self.outcome.message:
            lines.append(f"**Message**: {self.outcome.message}")

        lines.extend(["", "## Progress", "", "| Time | Message |", "|------|---------|"])
        for e in self.events:
            lines.append(f"| {e.at.strftime('%H:%M:%S')} | {e.message} |")

        lines.extend(["", "---", f"Generated: {datetime.now().isoformat()}"])
        return '\n'.join(lines)

    def _report_filename(self, report_dir: Path, ext: str) -> Path:
        """Generate report filename: <timestamp>.<namespace>-<name>.<status>.<ext>"""
        timestamp = self.started_at.strftime('%Y%m%d-%H%M%S') if self.started_at else 'unknown'
        status = self.outcome.status.value if self.outcome else 'unfinished'
        return report_dir / f"{timestamp}.{self.namespace}-{self.name}.{status}.{ext}"


def outcome_summary(outcome: ActivationOutcome) -> str:
    """One-line human summary of an outcome."""
    if outcome.status is OutcomeStatus.READY:
        return "Your development container is ready!"
    if outcome.status is OutcomeStatus.CANCELLED:
        return "Activation cancelled, development container is being torn down"
    return f"Up command failed: {outcome.message}"
