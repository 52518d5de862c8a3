#!/usr/bin/env python3
"""
Validation report.

Collects recoverable warnings and group-level errors during a run, plus the
word-count summary, and renders them to a human-readable text file with a
Jinja2 template.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from jinja2 import Environment, FileSystemLoader

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / 'templates'
TEMPLATE_NAME = 'validation_report.txt.jinja2'


@dataclass
class ReportEntry:
    group: str
    message: str


@dataclass
class ValidationReport:
    """Outcome of one operation (tables, build or atlas check)."""
    operation: str
    errors: List[ReportEntry] = field(default_factory=list)
    warnings: List[ReportEntry] = field(default_factory=list)
    word_counts: Dict[str, int] = field(default_factory=dict)
    written: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def total_words(self) -> int:
        return sum(self.word_counts.values())

    def warn(self, group: str, message: str) -> None:
        logger.warning(f"[{group}] {message}")
        self.warnings.append(ReportEntry(group, message))

    def error(self, group: str, message: str) -> None:
        logger.error(f"[{group}] {message}")
        self.errors.append(ReportEntry(group, message))

    def add_words(self, group: str, count: int) -> None:
        self.word_counts[group] = self.word_counts.get(group, 0) + count

    def record_output(self, path: Path) -> None:
        self.written.append(str(path))

    def errors_for(self, group: str) -> List[ReportEntry]:
        return [e for e in self.errors if e.group == group]

    def render(self, generated_at: Optional[datetime] = None) -> str:
        env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        template = env.get_template(TEMPLATE_NAME)
        return template.render(
            operation=self.operation,
            generated_at=(generated_at or datetime.now()).strftime('%Y-%m-%d %H:%M:%S'),
            ok=self.ok,
            errors=self.errors,
            warnings=self.warnings,
            word_counts=self.word_counts,
            total_words=self.total_words,
            written_count=len(self.written),
        )

    def write(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(self.render())
        logger.info(f"Validation report written to {path}")
        return path
