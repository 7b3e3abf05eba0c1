import pytest

from mj_orchestrator.chart import GRADE_COLORS, generate_chart, percentage_series


def test_percentage_series_is_grouped_by_grade():
    matrix = [[1, 0, 0, 0, 0, 0, 1], [0, 2, 0, 0, 0, 0, 0]]

    series = percentage_series(matrix, 2)

    assert len(series) == 7
    assert series[0] == [50.0, 0.0]
    assert series[1] == [0.0, 100.0]
    assert series[6] == [50.0, 0.0]


def test_percentage_series_with_no_votes():
    assert percentage_series([[0] * 7], 0) == [[0.0]] * 7


def test_generate_chart_writes_png(tmp_path):
    output = tmp_path / "images" / "chart.png"

    written = generate_chart([[3, 1, 0, 0, 0, 0, 1], [0, 0, 2, 2, 1, 0, 0]], 5, output, width=400, height=300)

    assert written == output
    assert output.read_bytes().startswith(b"\x89PNG")
    assert len(GRADE_COLORS) == 7


def test_generate_chart_rejects_short_rows(tmp_path):
    with pytest.raises(ValueError):
        generate_chart([[1, 2, 3]], 6, tmp_path / "chart.png")
