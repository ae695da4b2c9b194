import pytest

from galaxylf.lensing_cli import main


def test_main_writes_normalised_table(tmp_path, capsys):
    argv = [
        "--redshifts", "2.0",
        "--n-real", "100",
        "--n-mass", "20",
        "--n-z", "10",
        "--seed", "5",
        "--output-dir", str(tmp_path),
    ]
    assert main(argv) == 0
    rows = [
        [float(v) for v in line.split()]
        for line in (tmp_path / "Plnmu.dat").read_text().splitlines()
    ]
    assert len(rows) >= 2
    assert all(len(row) == 3 and row[0] == 2.0 for row in rows)
    spacing = rows[1][1] - rows[0][1]
    assert sum(row[2] for row in rows) * spacing == pytest.approx(1.0, rel=1e-4)
    assert (tmp_path / "sigma_CDM.dat").exists()
    assert "Generating lensing amplifications..." in capsys.readouterr().out


def test_main_rejects_single_bin(tmp_path):
    with pytest.raises(SystemExit) as info:
        main(["--n-bins", "1", "--output-dir", str(tmp_path)])
    assert info.value.code == 2


def test_main_rejects_non_numeric_option(tmp_path):
    with pytest.raises(SystemExit) as info:
        main(["--n-real", "many", "--output-dir", str(tmp_path)])
    assert info.value.code == 2