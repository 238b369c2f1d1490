"""
Tests for table data parsing, HTML tables and SVG charts.
"""

import json

import pytest

from composition.core.renderers.table import (
    DataPoint,
    TableRenderer,
    data_points,
    parse_rows,
    render_chart,
    render_html_table,
)
from composition.core.resources.identifier import identify
from composition.models.graph import ResourceNode
from composition.models.resource import ResourceKind
from composition.utils.exceptions import RendererError


@pytest.mark.unit
class TestParseRows:
    """Test data file formats."""

    def test_csv_with_quotes(self):
        rows, header = parse_rows('name,note\nAda,"likes, commas"\n\n', "csv")
        assert rows == [["name", "note"], ["Ada", "likes, commas"]]
        assert header is False

    def test_tsv(self):
        rows, _ = parse_rows("a\tb\n1\t2\n", "tsv")
        assert rows == [["a", "b"], ["1", "2"]]

    def test_json_objects_produce_header(self):
        text = json.dumps([{"city": "Oslo", "pop": 709000}, {"city": "Bergen", "area": 465}])
        rows, header = parse_rows(text, "json")
        assert header is True
        assert rows == [["city", "pop", "area"], ["Oslo", "709000", ""], ["Bergen", "", "465"]]

    def test_json_lists(self):
        rows, header = parse_rows('[["a", 1], ["b", null]]', "json")
        assert rows == [["a", "1"], ["b", ""]]
        assert header is False

    @pytest.mark.parametrize("text", ["{", '{"a": 1}', "[1, 2]"])
    def test_invalid_json(self, text):
        with pytest.raises(RendererError):
            parse_rows(text, "json")


@pytest.mark.unit
class TestPresentation:
    """Test HTML tables and charts."""

    def test_html_table_with_heading(self):
        html = render_html_table([["Name", "Qty"], ["<b>", "2"]], has_heading=True)
        assert html == (
            "<table><thead><tr><th>Name</th><th>Qty</th></tr></thead>"
            "<tbody><tr><td>&lt;b&gt;</td><td>2</td></tr></tbody></table>"
        )

    def test_html_table_without_heading(self):
        html = render_html_table([["a", "b"]], has_heading=False)
        assert "<thead>" not in html
        assert "<td>a</td>" in html

    def test_empty_table(self):
        assert render_html_table([], has_heading=True) == ""

    def test_data_points_skip_non_numeric(self):
        rows = [["label", "value"], ["a", "1,200"], ["b", "n/a"], ["c"], ["d", "2.5"]]
        points = data_points(rows, has_heading=True)
        assert points == [DataPoint(label="a", value=1200.0), DataPoint(label="d", value=2.5)]

    @pytest.mark.parametrize(
        "chart,element",
        [
            ("bar", 'class="bar"'),
            ("line", 'class="line"'),
            ("area", 'class="area"'),
            ("pie", 'class="slice"'),
            ("bubble", 'class="bubble"'),
        ],
    )
    def test_charts(self, chart, element):
        points = [DataPoint(label="a", value=1), DataPoint(label="b", value=3)]
        svg = render_chart(chart, points)
        assert svg.startswith("<svg ")
        assert f'class="composition-{chart}-chart"' in svg
        assert svg.count(element) >= 1
        assert svg.endswith("</svg>")

    def test_bar_heights_scale_to_peak(self):
        points = [DataPoint(label="low", value=1), DataPoint(label="high", value=2)]
        svg = render_chart("bar", points, width=100, height=100)
        assert 'height="40"' in svg
        assert 'height="80"' in svg

    def test_no_points(self):
        assert render_chart("pie", []) == "<svg></svg>"

    def test_unknown_chart(self):
        with pytest.raises(RendererError):
            render_chart("radar", [DataPoint(label="a", value=1)])

    def test_invalid_artifact(self):
        with pytest.raises(RendererError):
            TableRenderer().present("not json", {})


@pytest.mark.unit
@pytest.mark.asyncio
class TestTableRenderer:
    """Test the renderer against files on disk."""

    async def test_one_artifact_two_presentations(self, make_context, write):
        path = write("sales.csv", "month,total\nJan,10\nFeb,20\n")
        node = ResourceNode(id=identify(path), kind=ResourceKind.TABLE_DATA)
        renderer = TableRenderer()

        result = await renderer.render(make_context(node))

        table = renderer.present(result.content, {"has_heading": True})
        chart = renderer.present(result.content, {"chart": "line"})
        assert "<th>month</th>" in table
        assert "<td>Feb</td>" in table
        assert chart.count('class="point"') == 2

    async def test_json_header_is_kept(self, make_context, write):
        path = write("cities.json", '[{"city": "Oslo"}]')
        node = ResourceNode(id=identify(path), kind=ResourceKind.TABLE_DATA)
        renderer = TableRenderer()

        result = await renderer.render(make_context(node))

        assert "<th>city</th>" in renderer.present(result.content, {})
