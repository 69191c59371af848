"""
reconciler.py — Membership diff between the displayed and the fetched set.

    previous = {A, B, C},  fetched = [B, C, D]   →   added = [D], removed = {A}

Only membership drives entity churn. A report present on both sides is
left alone even if its content (e.g. vote counts) changed; it refreshes
only after it leaves and re-enters the visible set.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from safetymap.models.report import SafetyReport


@dataclass
class ReconcileResult:
    added: list[SafetyReport] = field(default_factory=list)
    removed: set[str] = field(default_factory=set)

    @property
    def is_noop(self) -> bool:
        return not self.added and not self.removed


def report_ids(reports: Iterable[SafetyReport]) -> set[str]:
    return {r.id for r in reports}


def reconcile(previous_ids: Iterable[str], new_reports: Iterable[SafetyReport]) -> ReconcileResult:
    """
    Return what to create and what to destroy.

    added keeps the order of *new_reports*; a duplicated id is added once.
    Calling again with previous_ids = ids(new_reports) yields an empty result.
    """
    previous = set(previous_ids)
    new_reports = list(new_reports)

    added: list[SafetyReport] = []
    seen: set[str] = set()
    for report in new_reports:
        if report.id in previous or report.id in seen:
            continue
        seen.add(report.id)
        added.append(report)

    removed = previous - report_ids(new_reports)
    return ReconcileResult(added=added, removed=removed)
