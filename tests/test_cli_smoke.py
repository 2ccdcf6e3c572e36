from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

from filecrush.formats.seqrec import write_records


def _run_cli(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    """Run filecrush CLI through a python -c wrapper.

    This avoids assuming the console-script entrypoint is installed.
    """
    cmd = [
        sys.executable,
        "-c",
        "from filecrush.cli import main; raise SystemExit(main())",
        *args,
    ]
    full_env = {k: v for k, v in os.environ.items() if not k.startswith("FILECRUSH_")}
    full_env.update(env or {})
    return subprocess.run(cmd, text=True, capture_output=True, env=full_env)


def _small_tree(root: Path) -> None:
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("alpha 1\n", encoding="utf-8")
    (root / "b.txt").write_text("beta 2\nbeta 3\n", encoding="utf-8")
    (root / "sub" / "c.txt").write_text("gamma 4\n", encoding="utf-8")
    (root / "big.txt").write_text("x" * 200 + "\n", encoding="utf-8")


def test_cli_crush_text_tree(tmp_path: Path) -> None:
    src = tmp_path / "in"
    out = tmp_path / "out"
    _small_tree(src)

    r = _run_cli(str(src), str(out), "--block-size", "100")
    assert r.returncode == 0, (r.stdout, r.stderr)

    assert (out / "crushed-00000.txt").read_text(encoding="utf-8") == "alpha 1\nbeta 2\nbeta 3\n"
    assert (out / "sub" / "crushed-00000.txt").read_text(encoding="utf-8") == "gamma 4\n"
    assert not (out / "big.txt").exists()


def test_cli_nothing_eligible_is_success_without_output(tmp_path: Path) -> None:
    src = tmp_path / "in"
    src.mkdir()
    out = tmp_path / "out"

    r = _run_cli(str(src), str(out), "--block-size", "100")
    assert r.returncode == 0, (r.stdout, r.stderr)
    assert not out.exists()


def test_cli_dry_run_prints_plan_and_writes_nothing(tmp_path: Path) -> None:
    src = tmp_path / "in"
    out = tmp_path / "out"
    _small_tree(src)

    r = _run_cli(str(src), str(out), "--block-size", "100", "--dry-run")
    assert r.returncode == 0, (r.stdout, r.stderr)
    assert not out.exists()

    report = json.loads(r.stdout)
    assert report["spec"] == "filecrush.run_report.v1"
    assert report["summary"]["eligible"] == 3
    assert report["summary"]["skipped"] == 1
    assert [d["rel"] for d in report["dirs"]] == [".", "sub"]


def test_cli_report_file_and_config_precedence(tmp_path: Path) -> None:
    src = tmp_path / "in"
    out = tmp_path / "out"
    rep = tmp_path / "reports" / "run.json"
    _small_tree(src)
    cfg = tmp_path / "crush.json"
    cfg.write_text(
        json.dumps(
            {
                "spec": "filecrush.crush_config.v1",
                "block_size": 10,
                "output_format": "seqrec",
                "compress": "gzip",
            }
        ),
        encoding="utf-8",
    )

    # the flag wins over the file's block_size
    r = _run_cli(str(src), str(out), "--config", f"@{cfg}", "--block-size", "100", "--report", str(rep))
    assert r.returncode == 0, (r.stdout, r.stderr)

    assert (out / "crushed-00000.seqrec.gz").is_file()
    report = json.loads(rep.read_text(encoding="utf-8"))
    assert report["block_size"] == 100
    assert report["config"]["output_format"] == "seqrec"
    assert report["summary"]["records"] == 4
    assert str(tmp_path) not in rep.read_text(encoding="utf-8")


def test_cli_block_size_from_environment(tmp_path: Path) -> None:
    src = tmp_path / "in"
    out = tmp_path / "out"
    _small_tree(src)

    r = _run_cli(str(src), str(out), "--dry-run", env={"FILECRUSH_BLOCK_SIZE": "1000"})
    assert r.returncode == 0, (r.stdout, r.stderr)
    report = json.loads(r.stdout)
    assert report["block_size"] == 1000
    assert report["summary"]["eligible"] == 4


def test_cli_unknown_format_exit_2(tmp_path: Path) -> None:
    src = tmp_path / "in"
    _small_tree(src)

    r = _run_cli(str(src), str(tmp_path / "out"), "--input-format", "avro")
    assert r.returncode == 2
    assert "[filecrush]" in r.stderr
    assert "avro" in r.stderr


def test_cli_bad_inline_config_exit_2(tmp_path: Path) -> None:
    src = tmp_path / "in"
    _small_tree(src)

    r = _run_cli(str(src), str(tmp_path / "out"), "--config", '{"spec": "filecrush.crush_config.v1", "x": 1}')
    assert r.returncode == 2
    assert "unsupported keys" in r.stderr


def test_cli_output_inside_input_exit_2(tmp_path: Path) -> None:
    src = tmp_path / "in"
    _small_tree(src)

    r = _run_cli(str(src), str(src / "out"), "--block-size", "100")
    assert r.returncode == 2
    assert not (src / "out").exists()


def test_cli_missing_input_exit_11(tmp_path: Path) -> None:
    r = _run_cli(str(tmp_path / "nope"), str(tmp_path / "out"))
    assert r.returncode == 11
    assert "[filecrush]" in r.stderr


def test_cli_corrupt_source_exit_12_and_skip_file(tmp_path: Path) -> None:
    src = tmp_path / "in"
    src.mkdir()
    write_records(src / "a.seqrec", [b"one", b"two"])
    (src / "b.seqrec").write_bytes(b"not a seqrec file")
    write_records(src / "c.seqrec", [b"three"])
    out = tmp_path / "out"

    r = _run_cli(str(src), str(out), "--input-format", "seqrec", "--block-size", "100")
    assert r.returncode == 12
    assert "b.seqrec" in r.stderr
    assert not any(p.is_file() for p in out.rglob("*"))

    r = _run_cli(
        str(src), str(out), "--input-format", "seqrec", "--block-size", "100", "--on-corrupt", "skip-file"
    )
    assert r.returncode == 0, (r.stdout, r.stderr)
    assert (out / "crushed-00000.seqrec").is_file()
    assert "excluding" in r.stderr


def test_cli_stand_alone(tmp_path: Path) -> None:
    src = tmp_path / "in"
    _small_tree(src)
    target = tmp_path / "all.txt"

    r = _run_cli(str(src), str(target), "--stand-alone", "--block-size", "100")
    assert r.returncode == 0, (r.stdout, r.stderr)
    assert target.read_text(encoding="utf-8") == "alpha 1\nbeta 2\nbeta 3\n"
