import os
import subprocess
import sys
from pathlib import Path

import pytest

from app.utils.dataset import Point
from scripts.summarize_points import main, read_points

ROOT = Path(__file__).resolve().parents[2]
SCRIPT = ROOT / "scripts" / "summarize_points.py"


def write_csv(tmp_path, text, name="points.csv"):
    path = tmp_path / name
    path.write_text(text)
    return path


def run_main(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["summarize_points.py", *map(str, args)])
    main()


def test_read_points_good_data(tmp_path):
    csv = write_csv(tmp_path, "x,y\n1,2\n2,4\n3,5\n")
    points, failures = read_points(csv, "x", "y")
    assert failures == []
    assert points == [Point(1.0, 2.0), Point(2.0, 4.0), Point(3.0, 5.0)]


def test_read_points_custom_columns(tmp_path):
    csv = write_csv(tmp_path, "hours,score,note\n1,10,a\n2,12,b\n")
    points, failures = read_points(csv, "hours", "score")
    assert not failures
    assert points[1] == Point(2.0, 12.0)


def test_read_points_missing_column(tmp_path):
    csv = write_csv(tmp_path, "x,z\n1,2\n")
    points, failures = read_points(csv, "x", "y")
    assert points == []
    assert len(failures) == 1
    assert "Missing column(s) ['y']" in failures[0]


def test_read_points_non_numeric_and_non_finite_rows(tmp_path):
    csv = write_csv(tmp_path, "x,y\n1,2\nabc,3\n3,inf\n4,5\n")
    points, failures = read_points(csv, "x", "y")
    assert points == []
    assert len(failures) == 1
    # header is line 1, so the bad rows are lines 3 and 4
    assert "[3, 4]" in failures[0], failures[0]


def test_main_prints_the_fit(monkeypatch, capsys, tmp_path):
    csv = write_csv(tmp_path, "x,y\n1,2\n2,4\n3,5\n4,4\n5,5\n")
    run_main(monkeypatch, "--csv", csv, "--table")
    out = capsys.readouterr().out
    assert "y = 0.6000x + 2.2000" in out
    assert "SCP=6.0000" in out
    assert "Σ" in out
    assert "Done" in out


@pytest.mark.parametrize(
    "text, expected",
    [
        ("x,y\n1,2\n", "insufficient data"),
        ("x,y\n2,1\n2,5\n2,3\n", "zero x-variance"),
    ],
)
def test_main_exits_2_when_regression_is_undefined(monkeypatch, capsys, tmp_path, text, expected):
    csv = write_csv(tmp_path, text)
    with pytest.raises(SystemExit) as exc:
        run_main(monkeypatch, "--csv", csv)
    assert exc.value.code == 2
    assert expected in capsys.readouterr().out


def test_main_exits_2_on_input_failures(monkeypatch, capsys, tmp_path):
    csv = write_csv(tmp_path, "a,b\n1,2\n")
    with pytest.raises(SystemExit) as exc:
        run_main(monkeypatch, "--csv", csv)
    assert exc.value.code == 2
    assert "[INPUT FAIL]" in capsys.readouterr().out


def test_script_exits_1_with_fatal_message_for_unreadable_csv(tmp_path):
    env = {**os.environ, "PYTHONPATH": str(ROOT)}
    proc = subprocess.run(
        [sys.executable, str(SCRIPT), "--csv", str(tmp_path / "missing.csv")],
        capture_output=True,
        text=True,
        cwd=ROOT,
        env=env,
        timeout=120,
    )
    assert proc.returncode == 1, proc.stderr
    assert "[FATAL][Input]" in proc.stderr
