import random

import pytest

from galaxylf.basics import (
    interpolate,
    interpolate2,
    interpolaten,
    lin,
    random_real,
    to_string_prec,
    write_column,
    write_grid2,
    write_grid3,
    write_matrix,
    write_stacked,
)


def _line_table(xs):
    return [[x, 2.0 * x + 1.0, -x] for x in xs]


def test_to_string_prec_fixed_digits():
    assert to_string_prec(3.14159, 2) == "3.14"
    text = to_string_prec(1.0e7, 3)
    assert "e" not in text
    assert len(text.split(".")[1]) == 3


def test_to_string_prec_roundtrip():
    for value in (0.5, 12.25, -7.125):
        assert float(to_string_prec(value, 4)) == value


def test_random_real_in_range_and_reproducible():
    a = [random_real(2.0, 5.0, random.Random(7)) for _ in range(3)]
    b = [random_real(2.0, 5.0, random.Random(7)) for _ in range(3)]
    assert a == b
    rng = random.Random(1)
    values = [random_real(-1.0, 3.0, rng) for _ in range(500)]
    assert all(-1.0 <= v <= 3.0 for v in values)
    assert max(values) - min(values) > 3.0


def test_random_real_without_generator():
    for _ in range(50):
        assert 10.0 <= random_real(10.0, 11.0) <= 11.0


def test_interpolate_reproduces_nodes():
    table = _line_table([0.0, 1.0, 2.0, 4.0])
    for row in table:
        assert interpolate(row[0], table) == row[1]


def test_interpolate_is_exact_for_linear_data():
    table = _line_table([0.0, 1.0, 2.0, 4.0])
    assert interpolate(2.5, table) == pytest.approx(6.0)


def test_interpolate_clamps_outside_range():
    table = _line_table([0.0, 1.0, 2.0])
    assert interpolate(-10.0, table) == table[0][1]
    assert interpolate(10.0, table) == table[-1][1]


def test_interpolate_decreasing_matches_increasing():
    xs = [0.0, 0.5, 1.5, 3.0]
    inc = _line_table(xs)
    dec = list(reversed(inc))
    for x in (-1.0, 0.0, 0.2, 0.5, 1.0, 2.9, 3.0, 5.0):
        assert interpolate(x, dec) == pytest.approx(interpolate(x, inc))


def test_interpolate_empty_table_raises():
    with pytest.raises(ValueError):
        interpolate(1.0, [])


def test_interpolaten_all_columns():
    table = _line_table([0.0, 1.0, 3.0])
    row = interpolaten(2.0, table)
    assert row[0] == 2.0
    assert row[1] == pytest.approx(interpolate(2.0, table))
    assert row[2] == pytest.approx(-2.0)


def test_interpolaten_clamps_to_end_rows():
    table = _line_table([0.0, 1.0, 3.0])
    assert interpolaten(-5.0, table) == table[0]
    assert interpolaten(9.0, table) == table[-1]
    result = interpolaten(9.0, table)
    result[1] = 99.0
    assert table[-1][1] != 99.0


def test_interpolaten_decreasing_table():
    table = list(reversed(_line_table([0.0, 1.0, 3.0])))
    row = interpolaten(0.5, table)
    assert row[0] == 0.5
    assert row[1] == pytest.approx(2.0)


def test_lin_endpoints():
    assert lin(4.0, 8.0, 1.0, 3.0, 1.0) == 4.0
    assert lin(4.0, 8.0, 1.0, 3.0, 3.0) == 8.0
    assert lin(4.0, 8.0, 1.0, 3.0, 2.0) == pytest.approx(6.0)


def _plane_grid(xs, ys):
    return [[[x + 10.0 * y, x * y] for y in ys] for x in xs]


def test_interpolate2_at_nodes():
    xs, ys = [0.0, 1.0, 2.0], [0.0, 5.0]
    grid = _plane_grid(xs, ys)
    for ix, x in enumerate(xs):
        for iy, y in enumerate(ys):
            assert interpolate2(x, y, xs, ys, grid) == pytest.approx(grid[ix][iy])


def test_interpolate2_bilinear_exact():
    xs, ys = [0.0, 1.0, 2.0], [0.0, 5.0]
    grid = _plane_grid(xs, ys)
    result = interpolate2(1.5, 2.5, xs, ys, grid)
    assert result[0] == pytest.approx(1.5 + 25.0)
    assert result[1] == pytest.approx(1.5 * 2.5)


def test_interpolate2_clamps_each_axis():
    xs, ys = [0.0, 1.0, 2.0], [0.0, 5.0]
    grid = _plane_grid(xs, ys)
    assert interpolate2(-1.0, -1.0, xs, ys, grid) == grid[0][0]
    assert interpolate2(9.0, 9.0, xs, ys, grid) == grid[2][1]
    edge = interpolate2(0.5, 9.0, xs, ys, grid)
    assert edge[0] == pytest.approx(0.5 + 50.0)
    edge = interpolate2(-3.0, 2.5, xs, ys, grid)
    assert edge[0] == pytest.approx(25.0)


def _read_numbers(path):
    return [[float(v) for v in line.split()] for line in path.read_text().splitlines()]


def test_write_column_roundtrip(tmp_path):
    path = tmp_path / "col.dat"
    values = [1.0, 2.5, 1.0e7]
    write_column(values, path)
    text = path.read_text()
    assert not text.endswith("\n")
    assert [float(v) for v in text.split("\n")] == values


def test_write_matrix_format(tmp_path):
    path = tmp_path / "m.dat"
    write_matrix([[1.0, 2.0], [3.0, 4.5]], path)
    assert path.read_text() == "1   2\n3   4.5\n"


def test_write_stacked_prefixes_keys(tmp_path):
    path = tmp_path / "s.dat"
    blocks = [[[1.0, 2.0], [3.0, 4.0]], [[5.0, 6.0]]]
    write_stacked([10.0, 20.0], blocks, path)
    assert _read_numbers(path) == [
        [10.0, 1.0, 2.0],
        [10.0, 3.0, 4.0],
        [20.0, 5.0, 6.0],
    ]


def test_write_grid2_roundtrip(tmp_path):
    path = tmp_path / "g2.dat"
    xs, ys = [0.0, 1.0], [0.0, 5.0]
    grid = _plane_grid(xs, ys)
    write_grid2(xs, ys, grid, path)
    rows = _read_numbers(path)
    assert len(rows) == 4
    assert rows[3] == [1.0, 5.0] + grid[1][1]
    assert path.read_text().splitlines()[0].endswith("   ")


def test_write_grid3_roundtrip(tmp_path):
    path = tmp_path / "g3.dat"
    xs, ys, zs = [1.0, 2.0], [3.0], [4.0, 5.0]
    grid = [[[[x * y * z] for z in zs] for y in ys] for x in xs]
    write_grid3(xs, ys, zs, grid, path)
    rows = _read_numbers(path)
    assert len(rows) == 4
    for row in rows:
        assert row[3] == pytest.approx(row[0] * row[1] * row[2])