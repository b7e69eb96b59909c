import os
from pathlib import Path
import subprocess
import sys


def _base_env(tmp_path: Path) -> dict[str, str]:
    env = os.environ.copy()
    env["DATABASE_URL"] = f"sqlite:///{tmp_path / 'cli.db'}"
    env["INPUT_DIR"] = str(tmp_path / "data")
    env["ERROR_DIR"] = str(tmp_path / "errors")
    env["WORKER_COUNT"] = "2"
    return env


def _run_cli(tmp_path: Path, *args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "bank_etl.main", *args],
        cwd=Path(__file__).resolve().parents[1],
        env=_base_env(tmp_path),
        check=False,
        capture_output=True,
        text=True,
    )


def test_cli_returns_nonzero_on_pipeline_failure(tmp_path: Path) -> None:
    (tmp_path / "data").mkdir(parents=True, exist_ok=True)

    proc = _run_cli(tmp_path, "run", "transactions")

    assert proc.returncode == 1
    assert "status=failed" in proc.stdout
    assert "input file not found" in proc.stdout


def test_cli_returns_zero_on_success(tmp_path: Path) -> None:
    input_dir = tmp_path / "data"
    input_dir.mkdir(parents=True, exist_ok=True)
    (input_dir / "intereses.csv").write_text(
        "cuenta_id,nombre,saldo,edad,tipo\n5,Unknown,100,30,A\n6,Ana,200,41,B\n",
        encoding="utf-8",
    )

    proc = _run_cli(tmp_path, "run", "interests", "--trigger-source", "manual")

    assert proc.returncode == 0
    assert "status=completed" in proc.stdout
    assert "written=1 skipped=1" in proc.stdout
    assert (tmp_path / "errors" / "errores-intereses.csv").exists()


def test_cli_run_all_reports_each_pipeline(tmp_path: Path) -> None:
    input_dir = tmp_path / "data"
    input_dir.mkdir(parents=True, exist_ok=True)
    (input_dir / "transacciones.csv").write_text("id,fecha,monto,tipo\n1,2024-01-15,100,credit\n", encoding="utf-8")

    proc = _run_cli(tmp_path, "run-all")

    assert proc.returncode == 1
    assert "Batch transacciones.csv executed" in proc.stdout
    assert proc.stdout.count("Error running batch") == 2
