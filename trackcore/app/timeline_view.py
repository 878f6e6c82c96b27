import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Union

from trackcore.app.db.models import TimelineEntry
from trackcore.app.errors import TrackCoreError
from trackcore.app.services import TimelineResult, TimelineService
from trackcore.app.session import Command
from trackcore.engine.filters import FilterOption, parse_filter_option
from trackcore.engine.timeline import prune_dependencies, to_chart_data
from trackcore.engine.zoom import ZoomController

logger = logging.getLogger(__name__)


class TimelineView:
    """State behind the Gantt screen: which project, which window, which filter
    and display toggles, plus the last rendered rows and a status line."""

    def __init__(self, service: TimelineService, project_id: Optional[str] = None,
                 zoom: Optional[ZoomController] = None):
        self.service = service
        self.project_id = project_id
        self.zoom = zoom or ZoomController.default_window()
        self.filter_option = FilterOption.ALL
        self.criteria: Dict[str, Any] = {}
        self.show_milestones = True
        self.show_dependencies = True
        self.show_completed_tasks = True
        self.status_message = ""
        self.entries: List[TimelineEntry] = []
        self.chart_data: List[Dict] = []
        self.critical_path: List[str] = []
        self._last: Optional[TimelineResult] = None

    def has_project(self) -> bool:
        return self.project_id is not None

    def select_project(self, project_id: Optional[str]) -> bool:
        self.project_id = project_id
        self._last = None
        return self.refresh()

    def refresh(self) -> bool:
        if not self.has_project():
            self.status_message = "No project selected"
            self._clear()
            return False
        start, end = self.zoom.window
        try:
            self._last = self.service.timeline(self.project_id, start, end, self.filter_option, self.criteria)
        except TrackCoreError as e:
            logger.warning("Timeline refresh for project %s failed: %s", self.project_id, e)
            self.status_message = f"Error loading chart data: {e}"
            return False
        self.critical_path = list(self._last.critical_path)
        self._render()
        self.status_message = "Chart data loaded successfully"
        return True

    def _clear(self) -> None:
        self._last = None
        self.entries = []
        self.chart_data = []
        self.critical_path = []

    def _render(self) -> None:
        if self._last is None:
            return
        entries = self._last.entries
        if not self.show_milestones:
            entries = [e for e in entries if not e.is_milestone]
        if not self.show_completed_tasks:
            entries = [e for e in entries if e.is_milestone or not e.completed]
        self.entries = prune_dependencies(entries)
        self.chart_data = to_chart_data(self.entries, self.show_dependencies)

    # ------------------------------
    # Filter and toggles
    # ------------------------------

    def set_filter(self, filter_option: Union[FilterOption, str, None],
                   criteria: Optional[Mapping[str, Any]] = None) -> bool:
        try:
            option = parse_filter_option(filter_option)
        except TrackCoreError as e:
            self.status_message = f"Error applying filter: {e}"
            return False
        self.filter_option = option
        self.criteria = dict(criteria or {})
        if not self.refresh():
            return False
        self.status_message = f"Filter applied: {option.value}"
        return True

    def toggle_milestones(self) -> None:
        self.show_milestones = not self.show_milestones
        self._render()
        self.status_message = "Showing milestones" if self.show_milestones else "Hiding milestones"

    def toggle_dependencies(self) -> None:
        self.show_dependencies = not self.show_dependencies
        self._render()
        self.status_message = "Showing dependencies" if self.show_dependencies else "Hiding dependencies"

    def toggle_completed_tasks(self) -> None:
        self.show_completed_tasks = not self.show_completed_tasks
        self._render()
        self.status_message = "Showing completed tasks" if self.show_completed_tasks else "Hiding completed tasks"

    # ------------------------------
    # Window
    # ------------------------------

    def zoom_in(self) -> bool:
        self.zoom.zoom_in()
        return self.refresh()

    def zoom_out(self) -> bool:
        self.zoom.zoom_out()
        return self.refresh()

    def go_to_today(self, today: Optional[date] = None) -> bool:
        self.zoom.jump_to_today(today)
        return self.refresh()

    # ------------------------------
    # Commands
    # ------------------------------

    def refresh_command(self) -> Command:
        return Command(self.has_project, self.refresh)

    def zoom_in_command(self) -> Command:
        return Command(self.has_project, self.zoom_in)

    def zoom_out_command(self) -> Command:
        return Command(self.has_project, self.zoom_out)

    def today_command(self) -> Command:
        return Command(self.has_project, self.go_to_today)

    def toggle_milestones_command(self) -> Command:
        return Command(lambda: True, self.toggle_milestones)

    def toggle_dependencies_command(self) -> Command:
        return Command(lambda: True, self.toggle_dependencies)
