from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from hants.batch import cli
from hants.batch.results import load_batch_result


@pytest.fixture
def npz_input(tmp_path: Path, make_harmonic) -> Path:
    base = make_harmonic(12, 12, 0.5, [(1, 0.2, 0.1)])
    cube = np.repeat(base[:, None], 4, axis=1)
    cube[3, 1] = 0.95  # high spike in series 1
    cube[:, 2] = np.nan  # fully missing series
    path = tmp_path / "ndvi.npz"
    np.savez(path, ndvi=cube)
    return path


def test_main_fits_npz_input(tmp_path: Path, npz_input: Path):
    out_path = tmp_path / "out" / "result.npz"

    code = cli.main(
        [
            "--input", str(npz_input),
            "--key", "ndvi",
            "--axis", "0",
            "--nfreq", "1",
            "--low", "0",
            "--high", "1",
            "--fit-tolerance", "0.05",
            "--outlier", "high",
            "--output", str(out_path),
        ]
    )

    assert code == 0
    result = load_batch_result(out_path)
    assert result.amplitude.shape == (2, 4)
    assert result.status.tolist() == ["ok", "ok", "skipped", "ok"]
    assert result.amplitude[0, 0] == pytest.approx(0.5, abs=0.01)
    assert result.amplitude[0, 1] == pytest.approx(0.5, abs=0.01)


def test_main_reads_csv_rows(tmp_path: Path, make_harmonic):
    rows = np.stack([make_harmonic(10, 10, m, [(1, 1.0, 0.0)]) for m in (1.0, 2.0, 3.0)])
    csv_path = tmp_path / "series.csv"
    pd.DataFrame(rows).to_csv(csv_path, header=False, index=False)
    out_path = tmp_path / "result.npz"

    code = cli.main(
        ["--input", str(csv_path), "--nfreq", "1", "--delta", "1e-9", "--output", str(out_path)]
    )

    assert code == 0
    result = load_batch_result(out_path)
    assert np.allclose(result.amplitude[:, 0], [1.0, 2.0, 3.0], atol=1e-6)
    assert np.allclose(result.amplitude[:, 1], 1.0, atol=1e-6)


def test_main_rejects_invalid_configuration(tmp_path: Path, npz_input: Path):
    out_path = tmp_path / "result.npz"
    code = cli.main(
        ["--input", str(npz_input), "--key", "ndvi", "--nfreq", "-1", "--output", str(out_path)]
    )
    assert code == 1
    assert not out_path.exists()


def test_main_reports_bad_axis(tmp_path: Path, npz_input: Path):
    out_path = tmp_path / "result.npz"
    code = cli.main(
        ["--input", str(npz_input), "--key", "ndvi", "--axis", "5", "--output", str(out_path)]
    )
    assert code == 1


def test_main_reports_missing_key(tmp_path: Path, npz_input: Path):
    code = cli.main(["--input", str(npz_input), "--key", "evi", "--output", str(tmp_path / "r.npz")])
    assert code == 1


def test_main_skips_existing_output(tmp_path: Path, npz_input: Path):
    out_path = tmp_path / "result.npz"
    out_path.write_bytes(b"existing")

    code = cli.main(["--input", str(npz_input), "--key", "ndvi", "--output", str(out_path)])

    assert code == 0
    assert out_path.read_bytes() == b"existing"


def test_main_writes_plot(tmp_path: Path, npz_input: Path):
    out_path = tmp_path / "result.npz"
    plot_path = tmp_path / "plots" / "series1.png"

    code = cli.main(
        [
            "--input", str(npz_input),
            "--key", "ndvi",
            "--axis", "0",
            "--nfreq", "1",
            "--outlier", "high",
            "--fit-tolerance", "0.05",
            "--output", str(out_path),
            "--plot", str(plot_path),
            "--plot-index", "1",
        ]
    )

    assert code == 0
    assert plot_path.exists()
    assert plot_path.stat().st_size > 0


def test_load_input_rejects_unknown_format(tmp_path: Path):
    path = tmp_path / "series.txt"
    path.write_text("1 2 3")
    with pytest.raises(ValueError):
        cli.load_input(path)


def test_main_reads_time_indices_file(tmp_path: Path):
    t = np.array([0, 1, 3, 4, 6, 7, 9, 10])
    theta = 2.0 * np.pi * t / 12
    data = np.stack([3.0 + np.cos(theta), 1.0 - 2.0 * np.sin(theta)])
    npz_path = tmp_path / "irregular.npz"
    np.savez(npz_path, data=data)
    t_path = tmp_path / "doy.txt"
    np.savetxt(t_path, t, fmt="%d")
    out_path = tmp_path / "result.npz"

    code = cli.main(
        [
            "--input", str(npz_path),
            "--time-indices", str(t_path),
            "--nbase", "12",
            "--nfreq", "1",
            "--delta", "1e-9",
            "--output", str(out_path),
        ]
    )

    assert code == 0
    result = load_batch_result(out_path)
    assert np.allclose(result.amplitude[:, 0], [3.0, 1.0], atol=1e-6)
    assert np.allclose(result.amplitude[:, 1], [1.0, 2.0], atol=1e-6)
    assert np.allclose(result.reconstructed, data, atol=1e-6)


def test_main_skips_csv_header_row(tmp_path: Path, make_harmonic):
    rows = np.stack([make_harmonic(10, 10, m, [(1, 0.5, 0.0)]) for m in (4.0, 6.0)])
    csv_path = tmp_path / "series.csv"
    pd.DataFrame(rows, columns=[f"t{i}" for i in range(10)]).to_csv(csv_path, index=False)
    out_path = tmp_path / "result.npz"

    code = cli.main(
        [
            "--input", str(csv_path),
            "--header",
            "--nfreq", "1",
            "--delta", "1e-9",
            "--output", str(out_path),
        ]
    )

    assert code == 0
    result = load_batch_result(out_path)
    assert result.amplitude.shape == (2, 2)
    assert result.status.tolist() == ["ok", "ok"]
    assert np.allclose(result.amplitude[:, 0], [4.0, 6.0], atol=1e-6)
