import logging
from datetime import date, timedelta
from typing import Callable, Optional, Tuple

from trackcore import config
from trackcore.app.errors import InvalidRangeError

logger = logging.getLogger(__name__)


class ZoomController:
    """The visible [window_start, window_end] date range of the timeline.

    Zooming is a convenience: when a step would cross the configured minimum or
    maximum span it is bounded silently rather than reported as an error.
    """

    def __init__(
        self,
        window_start: date,
        window_end: date,
        fraction: Optional[float] = None,
        min_span_days: Optional[int] = None,
        max_span_days: Optional[int] = None,
        today: Callable[[], date] = date.today,
    ):
        self.fraction = config.ZOOM_FRACTION if fraction is None else fraction
        self.min_span_days = config.ZOOM_MIN_SPAN_DAYS if min_span_days is None else min_span_days
        self.max_span_days = config.ZOOM_MAX_SPAN_DAYS if max_span_days is None else max_span_days
        self._today = today
        self.window_start = window_start
        self.window_end = window_end
        self.set_range(window_start, window_end)

    @classmethod
    def default_window(cls, today: Optional[date] = None, **kwargs) -> "ZoomController":
        """A week back and a month ahead of today, as the chart opens by default."""
        anchor = today or date.today()
        return cls(
            anchor - timedelta(days=config.DEFAULT_WINDOW_PAST_DAYS),
            anchor + timedelta(days=config.DEFAULT_WINDOW_FUTURE_DAYS),
            **kwargs,
        )

    @property
    def window(self) -> Tuple[date, date]:
        return self.window_start, self.window_end

    @property
    def span_days(self) -> int:
        return (self.window_end - self.window_start).days

    def _step(self) -> int:
        return max(1, int(self.span_days * self.fraction))

    def set_range(self, start: date, end: date) -> None:
        if end < start:
            raise InvalidRangeError(f"Window end {end} is before start {start}")
        self.window_start = start
        self.window_end = end

    def fit_to(self, start: date, end: date) -> None:
        """Show a whole project, e.g. from its start date to its hard deadline."""
        self.set_range(start, end)

    def zoom_in(self) -> None:
        step = self._step()
        if self.span_days - 2 * step < self.min_span_days:
            logger.debug("zoom_in ignored: span %s would drop below %s days", self.span_days, self.min_span_days)
            return
        self.window_start += timedelta(days=step)
        self.window_end -= timedelta(days=step)

    def zoom_out(self) -> None:
        span = self.span_days
        if span >= self.max_span_days:
            logger.debug("zoom_out ignored: span %s already at maximum", span)
            return
        step = self._step()
        if span + 2 * step <= self.max_span_days:
            self.window_start -= timedelta(days=step)
            self.window_end += timedelta(days=step)
            return
        extra = self.max_span_days - span
        self.window_start -= timedelta(days=extra // 2)
        self.window_end += timedelta(days=extra - extra // 2)

    def jump_to_today(self, today: Optional[date] = None) -> None:
        """Centre the window on today keeping its length."""
        anchor = today or self._today()
        span = self.span_days
        self.window_start = anchor - timedelta(days=span // 2)
        self.window_end = self.window_start + timedelta(days=span)
