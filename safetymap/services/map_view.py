"""
map_view.py — The single owner of a map's DisplayState.

MapViewSession is the view-update path: every reconcile pass and every
focus toggle goes through it. Both are plain synchronous methods, so on
one event loop they can never interleave and no lock is needed. The only
await is the proximity search inside refresh().

    session = MapViewSession(ProximityIndexQuery(store))
    update = await session.refresh(center, radius_km=20)   # ViewUpdate | None
    update = session.toggle_focus(report_id)

refresh() is cancel-and-replace: starting a new refresh cancels the one in
flight, and a superseded refresh returns None without touching the state,
so a slow response for an old camera position never overwrites a fresher
view. A failed fetch leaves the state at the last successful set.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Optional

from safetymap.core.config import settings
from safetymap.core.errors import RecordNotFound
from safetymap.models.geo import GeoPoint
from safetymap.models.map_view import ViewUpdate
from safetymap.models.report import SafetyLevel, SafetyReport
from safetymap.services.focus import FocusChange, FocusController
from safetymap.services.proximity import ProximityIndexQuery
from safetymap.services.reconciler import reconcile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntityHandle:
    """Default stand-in for a platform marker + radius circle pair."""
    report_id: str
    level: SafetyLevel = SafetyLevel.UNKNOWN
    radius_meters: int = 500


EntityFactory = Callable[[SafetyReport], Any]


def default_entity_factory(report: SafetyReport) -> EntityHandle:
    return EntityHandle(report.id, report.level, report.radius_meters)


@dataclass
class DisplayState:
    """What the map currently shows. Rebuilt from fetches, never persisted."""
    displayed: dict[str, Any] = field(default_factory=dict)
    reports: dict[str, SafetyReport] = field(default_factory=dict)
    focus: FocusController = field(default_factory=FocusController)

    @property
    def displayed_ids(self) -> set[str]:
        return set(self.displayed)

    @property
    def focused_id(self) -> Optional[str]:
        return self.focus.focused_id


class MapViewSession:
    def __init__(
        self,
        query: Optional[ProximityIndexQuery] = None,
        entity_factory: EntityFactory = default_entity_factory,
        focus_zoom: Optional[float] = None,
        state: Optional[DisplayState] = None,
    ) -> None:
        self.query = query
        self.entity_factory = entity_factory
        self.focus_zoom = settings.focus_zoom if focus_zoom is None else focus_zoom
        self.state = state or DisplayState()
        self._generation = 0
        self._inflight: Optional[asyncio.Task] = None

    @classmethod
    def restore(
        cls,
        displayed_ids: Iterable[str],
        focused_id: Optional[str] = None,
        **kwargs,
    ) -> "MapViewSession":
        """
        Rebuild a session from what a client says it displays.

        Handles are unknown here, so ids map to None. A focus on an id that
        is not displayed is dropped.
        """
        displayed = {rid: None for rid in displayed_ids}
        focus = FocusController(focused_id if focused_id in displayed else None)
        return cls(state=DisplayState(displayed=displayed, focus=focus), **kwargs)

    # ── Reconcile pass ────────────────────────────────────────────────────────

    def apply(
        self,
        reports: Iterable[SafetyReport],
        entity_factory: Optional[EntityFactory] = None,
    ) -> ViewUpdate:
        """Reconcile the displayed set against a freshly fetched report set."""
        factory = entity_factory or self.entity_factory
        reports = list(reports)
        diff = reconcile(self.state.displayed, reports)

        for rid in diff.removed:
            self.state.displayed.pop(rid, None)
            self.state.reports.pop(rid, None)

        for report in diff.added:
            self.state.displayed[report.id] = factory(report)

        # Entities that stay are not refreshed; only the lookup used for
        # recentring learns their latest location.
        for report in reports:
            if report.id in self.state.displayed:
                self.state.reports[report.id] = report

        focused = self.state.focus.focused_id
        if focused is not None and focused not in self.state.displayed:
            logger.debug("Focused report %s left the view; clearing focus", focused)
            self.state.focus.clear()

        if not diff.is_noop:
            logger.info("View reconciled: +%d −%d", len(diff.added), len(diff.removed))

        return ViewUpdate(
            added=diff.added,
            removed=diff.removed,
            visibility=self.state.focus.visibility(self.state.displayed),
        )

    # ── Focus pass ────────────────────────────────────────────────────────────

    def toggle_focus(self, report_id: str) -> ViewUpdate:
        if report_id not in self.state.displayed:
            raise RecordNotFound(report_id)
        return self._focus_update(self.state.focus.toggle(report_id))

    def clear_focus(self) -> ViewUpdate:
        return self._focus_update(self.state.focus.clear())

    def _focus_update(self, change: FocusChange) -> ViewUpdate:
        update = ViewUpdate(visibility=self.state.focus.visibility(self.state.displayed))
        if change.entered_focus:
            report = self.state.reports.get(change.current)
            if report is not None:
                update.recenter_to = report.location
                update.recenter_zoom = self.focus_zoom
        return update

    # ── Fetch + reconcile ─────────────────────────────────────────────────────

    async def refresh(
        self,
        center: GeoPoint,
        radius_km: Optional[float] = None,
    ) -> Optional[ViewUpdate]:
        """
        Search around *center* and reconcile. Returns None when a newer
        refresh superseded this one.
        """
        if self.query is None:
            raise RuntimeError("MapViewSession has no ProximityIndexQuery")

        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

        self._generation += 1
        generation = self._generation
        task = asyncio.ensure_future(self.query.find_nearby(center, radius_km))
        self._inflight = task

        try:
            reports = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.debug("Refresh %d superseded while in flight", generation)
                return None
            raise
        except Exception:
            if generation != self._generation:
                return None
            logger.warning("Refresh %d failed; keeping last displayed set", generation)
            raise
        finally:
            if self._inflight is task:
                self._inflight = None

        if generation != self._generation:
            logger.debug("Refresh %d finished after being superseded; ignored", generation)
            return None
        return self.apply(reports)
