"""
Table data renderer.

Parses CSV, TSV or JSON data files into rows. Each `::table` directive
presents the rows as an HTML table; each chart directive presents them as an
inline SVG chart built from (label, value) pairs.
"""

import csv
import html
import io
import json
import math
from typing import Any

from pydantic import BaseModel

from composition.core.renderers.base import RenderContext, Renderer
from composition.models.render import RenderResult
from composition.models.resource import ResourceKind
from composition.utils.exceptions import RendererError

CHART_WIDTH = 600
CHART_HEIGHT = 400
CHART_MARGIN = 40.0
PRIMARY_COLOR = "#3b82f6"
PALETTE = ["#3b82f6", "#ef4444", "#10b981", "#f59e0b", "#8b5cf6", "#ec4899"]


class DataPoint(BaseModel):
    label: str
    value: float


def parse_rows(text: str, suffix: str) -> tuple[list[list[str]], bool]:
    """
    Parse a data file into rows of strings.

    Returns:
        (rows, header) where `header` is True when the first row was derived
        from JSON object keys.

    Raises:
        RendererError: If the data cannot be parsed
    """
    if suffix == "json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RendererError(f"Invalid JSON table data: {e}") from e
        if not isinstance(data, list):
            raise RendererError("JSON table data must be a list")
        if data and all(isinstance(item, dict) for item in data):
            columns: list[str] = []
            for item in data:
                for key in item:
                    if key not in columns:
                        columns.append(key)
            rows = [[_cell(item.get(column)) for column in columns] for item in data]
            return [columns, *rows], True
        if all(isinstance(item, list) for item in data):
            return [[_cell(value) for value in item] for item in data], False
        raise RendererError("JSON table data must be a list of lists or a list of objects")

    delimiter = "\t" if suffix == "tsv" else ","
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    try:
        rows = [row for row in reader if row]
    except csv.Error as e:
        raise RendererError(f"Invalid delimited table data: {e}") from e
    return rows, False


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _num(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _to_float(text: str) -> float | None:
    try:
        value = float(text.replace(",", "").strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def data_points(rows: list[list[str]], has_heading: bool) -> list[DataPoint]:
    """First column is the label, second the value. Non-numeric rows are skipped."""
    body = rows[1:] if has_heading else rows
    points = []
    for row in body:
        if len(row) < 2:
            continue
        value = _to_float(row[1])
        if value is not None:
            points.append(DataPoint(label=row[0], value=value))
    return points


# ═══════════════════════════════════════════════════════════
# HTML TABLE
# ═══════════════════════════════════════════════════════════


def render_html_table(rows: list[list[str]], has_heading: bool) -> str:
    if not rows:
        return ""
    parts = ["<table>"]
    body = rows
    if has_heading:
        parts.append("<thead><tr>")
        parts.extend(f"<th>{html.escape(cell)}</th>" for cell in rows[0])
        parts.append("</tr></thead>")
        body = rows[1:]
    parts.append("<tbody>")
    for row in body:
        parts.append("<tr>")
        parts.extend(f"<td>{html.escape(cell)}</td>" for cell in row)
        parts.append("</tr>")
    parts.append("</tbody></table>")
    return "".join(parts)


# ═══════════════════════════════════════════════════════════
# SVG CHARTS
# ═══════════════════════════════════════════════════════════


def _svg_open(chart: str, width: int, height: int) -> str:
    return (
        f'<svg viewBox="0 0 {width} {height}" xmlns="http://www.w3.org/2000/svg" '
        f'class="composition-{chart}-chart">'
    )


def _max_value(points: list[DataPoint]) -> float:
    peak = max(point.value for point in points)
    return peak if peak > 0 else 1.0


def _plot_coordinates(
    points: list[DataPoint], width: int, height: int
) -> list[tuple[float, float]]:
    chart_width = width - 2 * CHART_MARGIN
    chart_height = height - 2 * CHART_MARGIN
    peak = _max_value(points)
    step = chart_width / max(len(points) - 1, 1)
    return [
        (
            CHART_MARGIN + i * step,
            CHART_MARGIN + (chart_height - (point.value / peak) * chart_height),
        )
        for i, point in enumerate(points)
    ]


def render_bar_chart(points: list[DataPoint], width: int, height: int) -> str:
    peak = _max_value(points)
    bar_width = width * 0.8 / len(points)
    margin = width * 0.1
    chart_height = height * 0.8
    margin_top = height * 0.1

    svg = [_svg_open("bar", width, height)]
    for i, point in enumerate(points):
        bar_height = max(point.value, 0.0) / peak * chart_height
        x = margin + i * bar_width
        y = margin_top + (chart_height - bar_height)
        svg.append(
            f'<rect x="{_num(x)}" y="{_num(y)}" width="{_num(bar_width * 0.8)}" '
            f'height="{_num(bar_height)}" fill="{PRIMARY_COLOR}" class="bar"/>'
        )
        svg.append(
            f'<text x="{_num(x + bar_width * 0.4)}" y="{height - 5}" text-anchor="middle" '
            f'font-size="12" class="label">{html.escape(point.label)}</text>'
        )
    svg.append("</svg>")
    return "".join(svg)


def render_line_chart(points: list[DataPoint], width: int, height: int) -> str:
    coordinates = _plot_coordinates(points, width, height)
    path = " L".join(f"{_num(x)},{_num(y)}" for x, y in coordinates)

    svg = [_svg_open("line", width, height)]
    svg.append(
        f'<path d="M{path}" fill="none" stroke="{PRIMARY_COLOR}" stroke-width="2" class="line"/>'
    )
    for x, y in coordinates:
        svg.append(
            f'<circle cx="{_num(x)}" cy="{_num(y)}" r="4" fill="{PRIMARY_COLOR}" class="point"/>'
        )
    svg.append("</svg>")
    return "".join(svg)


def render_area_chart(points: list[DataPoint], width: int, height: int) -> str:
    coordinates = _plot_coordinates(points, width, height)
    baseline = height - CHART_MARGIN
    path = f"M{_num(CHART_MARGIN)},{_num(baseline)}"
    for x, y in coordinates:
        path += f" L{_num(x)},{_num(y)}"
    path += f" L{_num(coordinates[-1][0])},{_num(baseline)} Z"

    return (
        _svg_open("area", width, height)
        + f'<path d="{path}" fill="{PRIMARY_COLOR}" fill-opacity="0.3" '
        f'stroke="{PRIMARY_COLOR}" stroke-width="2" class="area"/>'
        + "</svg>"
    )


def render_pie_chart(points: list[DataPoint], width: int, height: int) -> str:
    total = sum(max(point.value, 0.0) for point in points)
    if total <= 0:
        return _svg_open("pie", width, height) + "</svg>"
    center_x, center_y = width / 2, height / 2
    radius = min(width, height) / 2 * 0.8

    svg = [_svg_open("pie", width, height)]
    angle = -90.0  # start at the top
    for i, point in enumerate(points):
        sweep = max(point.value, 0.0) / total * 360.0
        end = angle + sweep
        x1 = center_x + radius * math.cos(math.radians(angle))
        y1 = center_y + radius * math.sin(math.radians(angle))
        x2 = center_x + radius * math.cos(math.radians(end))
        y2 = center_y + radius * math.sin(math.radians(end))
        large_arc = 1 if sweep > 180 else 0
        svg.append(
            f'<path d="M{_num(center_x)},{_num(center_y)} L{_num(x1)},{_num(y1)} '
            f'A{_num(radius)},{_num(radius)} 0 {large_arc},1 {_num(x2)},{_num(y2)} Z" '
            f'fill="{PALETTE[i % len(PALETTE)]}" class="slice"/>'
        )
        angle = end
    svg.append("</svg>")
    return "".join(svg)


def render_bubble_chart(points: list[DataPoint], width: int, height: int) -> str:
    peak = _max_value(points)
    svg = [_svg_open("bubble", width, height)]
    for i, ((x, y), point) in enumerate(zip(_plot_coordinates(points, width, height), points)):
        radius = max(point.value, 0.0) / peak * 30.0 + 10.0
        color = PALETTE[i % len(PALETTE)]
        svg.append(
            f'<circle cx="{_num(x)}" cy="{_num(y)}" r="{_num(radius)}" fill="{color}" '
            f'fill-opacity="0.6" stroke="{color}" stroke-width="2" class="bubble"/>'
        )
    svg.append("</svg>")
    return "".join(svg)


CHARTS = {
    "bar": render_bar_chart,
    "line": render_line_chart,
    "area": render_area_chart,
    "pie": render_pie_chart,
    "bubble": render_bubble_chart,
}


def render_chart(
    chart: str, points: list[DataPoint], width: int = CHART_WIDTH, height: int = CHART_HEIGHT
) -> str:
    """
    Raises:
        RendererError: If the chart type is unknown
    """
    draw = CHARTS.get(chart)
    if draw is None:
        raise RendererError(f"Unknown chart type: {chart}", context={"chart": chart})
    if not points:
        return "<svg></svg>"
    return draw(points, width, height)


class TableRenderer(Renderer):
    """Renders `table_data` resources; the artifact is the parsed rows as JSON."""

    kind = ResourceKind.TABLE_DATA

    async def render(self, context: RenderContext) -> RenderResult:
        rid = context.node.id
        text = await context.session.text(rid)
        rows, header = parse_rows(text, rid.suffix)
        return context.result(json.dumps({"rows": rows, "header": header}))

    def present(self, content: str, options: dict[str, Any]) -> str:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise RendererError(f"Invalid table artifact: {e}") from e
        rows = data.get("rows", [])
        has_heading = bool(options.get("has_heading")) or data.get("header", False)

        chart = options.get("chart")
        if chart:
            return render_chart(chart, data_points(rows, has_heading))
        return render_html_table(rows, has_heading)
