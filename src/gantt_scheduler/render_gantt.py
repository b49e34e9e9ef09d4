from __future__ import annotations

import datetime as dt
from importlib import metadata
from pathlib import Path
from typing import Iterable

import matplotlib

matplotlib.use("Agg")  # headless, deterministic output
import matplotlib.dates as mdates
import matplotlib.path as mpath
import matplotlib.pyplot as plt
from matplotlib.patches import FancyArrowPatch, Polygon

from .render_rows import FlatRenderRow

Rect = tuple[float, float, float, float]  # (xmin, xmax, ymin, ymax)

# Layout knobs.
ROW_HEIGHT = 0.6
ROUTE_X_PAD = 0.35  # gap between bar edges and connector ends, in days
ROUTE_CLEARANCE = 0.12  # clearance against bars when checking polylines
DETOUR_STEP_X = 0.5
DETOUR_MAX_STEPS = 8
DETOUR_MARGIN_X = 1.0
BRACKET_LW = 2.5
TIMELINE_PAD_DAYS = 7
TITLE_FONT = 14
LABEL_FONT = 10
FOOTER_FONT = 8
TICK_FONT = 9
TOP_MARGIN_FRAC = 0.85
TITLE_Y = 0.985

BAR_COLOR = "#4a78b5"
CRITICAL_COLOR = "#c0392b"
PROGRESS_COLOR = "#1f2d3d"
BASELINE_COLOR = "#b0b0b0"
GROUP_COLOR = "#555555"
DEADLINE_COLOR = "#d35400"


def render_gantt(
    rows: list[FlatRenderRow],
    out_path: str,
    title: str,
    min_date: dt.date | None = None,
    max_date: dt.date | None = None,
) -> None:
    """
    Render a static SVG Gantt chart of a computed schedule to `out_path`.

    - Critical tasks are drawn in red, others in blue; progress is a dark
      inner strip and the baseline, when present, a thin grey bar below.
    - Split tasks draw one bar per segment joined by a dotted line.
    - Milestones are lozenges and summary tasks brackets.
    """

    if not rows:
        raise ValueError("rows must not be empty")

    min_date, max_date = _resolve_date_window(rows, min_date, max_date)
    span_days = (max_date - min_date).days + 1

    fig_height = max(3.0, ROW_HEIGHT * len(rows) + 2.0)
    fig_width = max(12.0, min(24.0, span_days / 7.0 * 2.0 + 6.0))
    fig = plt.figure(figsize=(fig_width, fig_height))
    gs = fig.add_gridspec(1, 2, width_ratios=[1.2, 4.0], wspace=0.05, left=0.06, right=0.98, top=TOP_MARGIN_FRAC, bottom=0.1)
    label_ax = fig.add_subplot(gs[0, 0])
    ax = fig.add_subplot(gs[0, 1], sharey=label_ax)

    ax.set_ylim(-1, len(rows))
    ax.invert_yaxis()
    ax.set_xlim(
        mdates.date2num(min_date - dt.timedelta(days=TIMELINE_PAD_DAYS)),
        mdates.date2num(max_date + dt.timedelta(days=TIMELINE_PAD_DAYS)),
    )
    ax.xaxis_date()
    ax.xaxis.tick_top()
    major_locator, major_formatter = _major_tick_strategy(span_days)
    ax.xaxis.set_major_locator(major_locator)
    ax.xaxis.set_major_formatter(major_formatter)
    ax.grid(True, axis="x", which="major", linestyle="--", alpha=0.4)
    ax.tick_params(axis="x", labelrotation=30, labelsize=TICK_FONT, pad=4)
    ax.set_yticks([])

    label_ax.set_ylim(-1, len(rows))
    label_ax.invert_yaxis()
    label_ax.set_xlim(0, 1)
    label_ax.axis("off")

    fig.suptitle(title, x=0.5, fontsize=TITLE_FONT, y=TITLE_Y)
    fig.text(
        0.99,
        0.01,
        f"gantt-scheduler v{_tool_version()}",
        ha="right",
        va="bottom",
        fontsize=FOOTER_FONT,
        alpha=0.8,
    )

    bar_rects: dict[str, Rect] = {}

    for y, row in enumerate(rows):
        label_ax.text(
            0.98 - row.indent * 0.04,
            y,
            row.name,
            ha="right",
            va="center",
            fontsize=LABEL_FONT,
            fontweight="bold" if row.node_type == "bracket" else "normal",
            transform=label_ax.transData,
        )

        if row.baseline is not None and row.node_type != "bracket":
            base_start, base_end = (mdates.date2num(d) for d in row.baseline)
            ax.barh(
                y + ROW_HEIGHT * 0.45,
                width=max(base_end - base_start, 0.2),
                left=base_start,
                height=ROW_HEIGHT * 0.15,
                color=BASELINE_COLOR,
                zorder=1,
            )

        if row.node_type in ("bar", "split") and row.start_date and row.end_date:
            spans = row.segments if row.node_type == "split" and row.segments else [(row.start_date, row.end_date)]
            bar_rects[row.node_id] = _draw_bar(ax, y, spans, row)

        elif row.node_type == "lozenge" and row.start_date:
            center_x = mdates.date2num(row.start_date)
            half_width = 0.45
            half_height = ROW_HEIGHT / 1.5
            diamond = [
                (center_x - half_width, y),
                (center_x, y - half_height),
                (center_x + half_width, y),
                (center_x, y + half_height),
            ]
            color = CRITICAL_COLOR if row.is_critical else "#666666"
            ax.add_patch(Polygon(diamond, closed=True, facecolor=color, edgecolor="black", zorder=3))
            bar_rects[row.node_id] = (center_x - half_width, center_x + half_width, y - half_height, y + half_height)

        elif row.node_type == "bracket" and row.start_date and row.end_date:
            x_start = mdates.date2num(row.start_date)
            x_end = mdates.date2num(row.end_date)
            cap = ROW_HEIGHT / 2.2
            ax.plot([x_start, x_end], [y, y], color=GROUP_COLOR, linewidth=BRACKET_LW, zorder=2)
            ax.plot([x_start, x_start], [y - cap, y + cap], color=GROUP_COLOR, linewidth=BRACKET_LW, zorder=2)
            ax.plot([x_end, x_end], [y - cap, y + cap], color=GROUP_COLOR, linewidth=BRACKET_LW, zorder=2)

        if row.deadline is not None:
            x = mdates.date2num(row.deadline)
            ax.plot([x, x], [y - ROW_HEIGHT / 2, y + ROW_HEIGHT / 2], color=DEADLINE_COLOR, linewidth=1.5, zorder=4)

    _draw_dependencies(ax, rows, bar_rects)

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format="svg", bbox_inches="tight")
    plt.close(fig)


def _draw_bar(ax: plt.Axes, y: int, spans: list[tuple[dt.date, dt.date]], row: FlatRenderRow) -> Rect:
    """Draw one bar per span and return the bounding rect used for routing."""

    color = CRITICAL_COLOR if row.is_critical else BAR_COLOR
    nums = [(mdates.date2num(start), mdates.date2num(end)) for start, end in spans]
    for start_num, end_num in nums:
        width = max(end_num - start_num, 0.2)
        ax.barh(y, width=width, left=start_num, height=ROW_HEIGHT, color=color, edgecolor="black", linewidth=0.5, zorder=2)
        if row.progress > 0:
            ax.barh(
                y,
                width=width * min(row.progress, 100.0) / 100.0,
                left=start_num,
                height=ROW_HEIGHT * 0.3,
                color=PROGRESS_COLOR,
                zorder=3,
            )
    for (_, prev_end), (next_start, _) in zip(nums, nums[1:]):
        ax.plot([prev_end, next_start], [y, y], color=color, linestyle=":", linewidth=1.0, zorder=1)

    return (nums[0][0], nums[-1][1], y - ROW_HEIGHT / 2, y + ROW_HEIGHT / 2)


def _resolve_date_window(
    rows: Iterable[FlatRenderRow], min_date: dt.date | None, max_date: dt.date | None
) -> tuple[dt.date, dt.date]:
    dates: list[dt.date] = []
    for row in rows:
        dates.extend(d for d in (row.start_date, row.end_date, row.deadline) if d is not None)
        if row.baseline is not None:
            dates.extend(row.baseline)
    if not dates and (min_date is None or max_date is None):
        raise ValueError("Cannot infer the date window; no date values present")
    return min_date or min(dates), max_date or max(dates)


def _tool_version() -> str:
    try:
        return metadata.version("gantt-scheduler")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def _major_tick_strategy(span_days: int) -> tuple[mdates.DateLocator, mdates.DateFormatter]:
    """Choose a major tick locator/formatter to avoid overlapping labels."""
    if span_days > 180:
        return mdates.MonthLocator(interval=1), mdates.DateFormatter("%b %Y")
    if span_days > 90:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=2), mdates.DateFormatter("%b %d")
    if span_days > 45:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=1), mdates.DateFormatter("%b %d")
    return mdates.DayLocator(interval=2), mdates.DateFormatter("%b %d")


def segment_intersects_rect(seg: tuple[tuple[float, float], tuple[float, float]], rect: Rect) -> bool:
    """Return True if an orthogonal segment touches or crosses the rectangle."""
    (x1, y1), (x2, y2) = seg
    xmin, xmax, ymin, ymax = rect
    if y1 == y2:
        if not ymin <= y1 <= ymax:
            return False
        x_low, x_high = sorted((x1, x2))
        return not (x_high < xmin or x_low > xmax)
    if x1 == x2:
        if not xmin <= x1 <= xmax:
            return False
        y_low, y_high = sorted((y1, y2))
        return not (y_high < ymin or y_low > ymax)
    # Diagonal segments count as blocked.
    return True


def polyline_intersects_rects(polyline: list[tuple[float, float]], rects: Iterable[Rect], clearance: float) -> bool:
    inflated = [(x0 - clearance, x1 + clearance, y0 - clearance, y1 + clearance) for x0, x1, y0, y1 in rects]
    for seg in zip(polyline, polyline[1:]):
        if any(segment_intersects_rect(seg, rect) for rect in inflated):
            return True
    return False


def choose_detour_x(a_rect: Rect, b_rect: Rect) -> float:
    """Pick a detour lane left of the successor, shifting left until the vertical run is clear."""

    candidate = b_rect[0] - ROUTE_X_PAD
    floor_x = min(a_rect[0], b_rect[0]) - DETOUR_MARGIN_X
    start_y = (a_rect[2] + a_rect[3]) / 2
    end_y = (b_rect[2] + b_rect[3]) / 2
    for _ in range(DETOUR_MAX_STEPS + 1):
        if not polyline_intersects_rects([(candidate, start_y), (candidate, end_y)], [a_rect, b_rect], ROUTE_CLEARANCE):
            return candidate
        candidate = max(candidate - DETOUR_STEP_X, floor_x)
    return candidate


def route_pattern_simple(a_rect: Rect, b_rect: Rect) -> list[tuple[float, float]]:
    """Three-segment pattern: right, vertical, right."""
    start = (a_rect[1] + ROUTE_X_PAD, (a_rect[2] + a_rect[3]) / 2)
    goal = (b_rect[0] - ROUTE_X_PAD, (b_rect[2] + b_rect[3]) / 2)
    x_lane = (start[0] + goal[0]) / 2
    return [start, (x_lane, start[1]), (x_lane, goal[1]), goal]


def route_pattern_detour(a_rect: Rect, b_rect: Rect) -> list[tuple[float, float]]:
    """Five-segment detour: right, vertical, left, vertical, right."""
    start = (a_rect[1] + ROUTE_X_PAD, (a_rect[2] + a_rect[3]) / 2)
    goal = (b_rect[0] - ROUTE_X_PAD, (b_rect[2] + b_rect[3]) / 2)
    x_lane = a_rect[1] + ROUTE_X_PAD * 2
    x_detour = choose_detour_x(a_rect, b_rect)
    y_mid = (start[1] + goal[1]) / 2
    return [start, (x_lane, start[1]), (x_lane, y_mid), (x_detour, y_mid), (x_detour, goal[1]), goal]


def route_dependency(a_rect: Rect, b_rect: Rect, rects: dict[str, Rect]) -> list[tuple[float, float]]:
    """Simple route when the successor starts right of the predecessor, otherwise a detour."""

    others = [rect for rect in rects.values() if rect is not a_rect and rect is not b_rect]
    simple = route_pattern_simple(a_rect, b_rect)
    if b_rect[0] >= a_rect[1] + ROUTE_CLEARANCE and not polyline_intersects_rects(simple, others, ROUTE_CLEARANCE):
        return simple
    return route_pattern_detour(a_rect, b_rect)


def _polyline_path(points: list[tuple[float, float]]) -> mpath.Path:
    codes = [mpath.Path.MOVETO] + [mpath.Path.LINETO] * (len(points) - 1)
    return mpath.Path(points, codes)


def _draw_dependencies(ax: plt.Axes, rows: list[FlatRenderRow], bar_rects: dict[str, Rect]) -> None:
    for row in rows:
        b_rect = bar_rects.get(row.node_id)
        if b_rect is None:
            continue
        for dep_id in row.depends_on:
            a_rect = bar_rects.get(dep_id)
            if a_rect is None:
                continue
            arrow = FancyArrowPatch(
                path=_polyline_path(route_dependency(a_rect, b_rect, bar_rects)),
                arrowstyle="-|>",
                mutation_scale=8.0,
                lw=0.9,
                color="#3a3a3a",
                shrinkA=0.5,
                shrinkB=0.5,
            )
            ax.add_patch(arrow)
