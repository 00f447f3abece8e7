#!/usr/bin/env python3
"""Step results collected by apply/revert workflows"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional


logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    """Outcome of one tuning step or one restored entry"""
    name: str
    ok: bool
    error: Optional[Exception] = None


@dataclass
class TuningReport:
    """Ordered collection of step outcomes"""
    action: str
    results: List[StepResult] = field(default_factory=list)

    def record(self, name: str, error: Optional[Exception] = None) -> StepResult:
        result = StepResult(name=name, ok=error is None, error=error)
        self.results.append(result)
        if error is not None:
            logger.error(str(error))
        return result

    @property
    def failures(self) -> List[StepResult]:
        return [r for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        total = len(self.results)
        failed = len(self.failures)
        text = f"{self.action}: {total - failed}/{total} steps succeeded"
        if failed:
            text += "; failed: " + ", ".join(r.name for r in self.failures)
        return text
