import pytest

from galaxylf.uvlf_cli import LENSING_REDSHIFTS, main

SMALL = ["--n-mass", "12", "--n-z", "12", "--nk", "40", "--n-model", "2"]


def _write_plnmu(path, redshifts):
    with open(path, "w", encoding="utf-8") as out:
        for z in redshifts:
            for lnmu, density in ((-0.1, 2.0), (0.0, 5.0), (0.1, 3.0)):
                out.write(f"{z}   {lnmu}   {density}\n")
    return path


def _read_rows(path):
    with open(path, encoding="utf-8") as handle:
        return [[float(v) for v in line.split()] for line in handle if line.strip()]


def test_cdm_run_writes_luminosity_table(tmp_path, capsys):
    plnmu = _write_plnmu(tmp_path / "Plnmu.dat", LENSING_REDSHIFTS)
    out = tmp_path / "out"
    code = main(["0", "0", *SMALL, "--plnmu", str(plnmu), "--output-dir", str(out)])
    assert code == 0
    rows = _read_rows(out / "UVluminosity_CDM.dat")
    assert len(rows) == 12 * len(LENSING_REDSHIFTS)
    assert all(len(row) == 6 for row in rows)
    assert sorted({row[0] for row in rows}) == LENSING_REDSHIFTS
    assert rows[0][2] == pytest.approx(1.0e6)
    assert all(min(row[3:]) >= 1.0e-64 for row in rows)
    assert "Computing UV luminosity functions..." in capsys.readouterr().out


def test_cdm_run_writes_halo_tables(tmp_path):
    plnmu = _write_plnmu(tmp_path / "Plnmu.dat", LENSING_REDSHIFTS)
    out = tmp_path / "out"
    main(["0", "0", *SMALL, "--plnmu", str(plnmu), "--output-dir", str(out)])
    assert (out / "sigma_CDM.dat").is_file()
    hmf_rows = _read_rows(out / "HMF_CDM.dat")
    assert len(hmf_rows) == 12 * 12


def test_wrong_plnmu_file_stops_early(tmp_path, capsys):
    plnmu = _write_plnmu(tmp_path / "Plnmu.dat", [4.0, 5.0])
    out = tmp_path / "out"
    code = main(["0", "0", *SMALL, "--plnmu", str(plnmu), "--output-dir", str(out)])
    assert code == 0
    assert "Wrong Plnmu.dat file." in capsys.readouterr().out
    assert not (out / "UVluminosity_CDM.dat").exists()


def test_missing_plnmu_file_is_reported(tmp_path, capsys):
    out = tmp_path / "out"
    code = main(
        ["0", "0", *SMALL, "--plnmu", str(tmp_path / "absent.dat"), "--output-dir", str(out)]
    )
    assert code == 0
    printed = capsys.readouterr().out
    assert "Plnmu.dat missing." in printed
    assert "Wrong Plnmu.dat file." in printed


def test_fuzzy_dark_matter_run_names_output_by_model(tmp_path):
    plnmu = _write_plnmu(tmp_path / "Plnmu.dat", LENSING_REDSHIFTS)
    out = tmp_path / "out"
    code = main(["0", "1", *SMALL, "--plnmu", str(plnmu), "--output-dir", str(out)])
    assert code == 0
    rows = _read_rows(out / "UVluminosity_FDM.dat")
    assert len(rows) == 12 * len(LENSING_REDSHIFTS)
    assert (out / "HMF_FDM.dat").is_file()


@pytest.mark.parametrize(
    "argv",
    [
        ["0", "7"],
        ["2", "0"],
        ["0"],
        ["0", "0", "--n-mass", "1"],
        ["0", "0", "--n-model", "1"],
    ],
)
def test_invalid_arguments_exit_with_usage_error(argv):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 2