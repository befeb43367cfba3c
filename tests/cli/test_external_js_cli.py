from __future__ import annotations

import io
import json
import sys
from pathlib import Path

import pytest

from external_js.app import cli
from external_js.main import main

FAKE_GUEST = Path(__file__).resolve().parents[1] / "bridge" / "fake_guest.py"


def _config(tmp_path: Path) -> Path:
    # JSON flow sequences are valid YAML and keep interpreter paths quoted.
    command = json.dumps([sys.executable, str(FAKE_GUEST)])
    path = tmp_path / "bridge.yml"
    path.write_text(
        "runtimes:\n"
        f"  node:\n    command: {command}\n"
        f"  deno:\n    command: {command}\n"
        f"  bun:\n    command: {command}\n",
        encoding="utf-8",
    )
    return path


def _run(argv: list[str]) -> tuple[int, str, str]:
    out, err = io.StringIO(), io.StringIO()
    code = cli.run(argv, stdout=out, stderr=err)
    return code, out.getvalue(), err.getvalue()


def test_parse_args_run_command() -> None:
    args = cli.parse_args(
        ["run", "flows/a.js", "--payload", '{"x": 1}', "--runtime", "deno", "--env", "A=1", "--timeout", "2s"]
    )
    assert args.command == "run"
    assert args.entry == "flows/a.js"
    assert args.runtime == "deno"
    assert args.env == ["A=1"]
    assert args.scenario == "cli"
    assert args.samples is False


def test_parse_args_rejects_unknown_runtime() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["run", "a.js", "--runtime", "python"])


def test_build_options_always_uses_options_shape() -> None:
    args = cli.parse_args(["run", "a.js", "--payload", '{"payload": 1, "timeout": "x"}'])
    assert cli.build_options(args) == {"payload": {"payload": 1, "timeout": "x"}}
    args = cli.parse_args(["run", "a.js", "--env", "A=1", "--env", "B=x=y", "--timeout", "1s", "--runtime", "bun"])
    assert cli.build_options(args) == {
        "payload": None,
        "env": {"A": "1", "B": "x=y"},
        "timeout": "1s",
        "runtime": "bun",
    }


def test_run_prints_result(tmp_path: Path) -> None:
    code, out, _ = _run(["run", "echo.js", "--payload", '{"user": "alice"}', "--config", str(_config(tmp_path))])
    assert code == cli.EXIT_OK
    assert json.loads(out) == {"echo": {"user": "alice"}}


def test_run_passes_scenario_and_env(tmp_path: Path) -> None:
    code, out, _ = _run(
        ["run", "context.js", "--scenario", "smoke", "--env", "FLOW_ENV=on", "--config", str(_config(tmp_path))]
    )
    assert code == cli.EXIT_OK
    result = json.loads(out)
    assert result["context"]["vu"] == {"id": 1, "iteration": 0, "scenario": "smoke"}
    assert result["flow_env"] == "on"


def test_run_streams_samples_to_stderr(tmp_path: Path) -> None:
    code, out, err = _run(["run", "telemetry.js", "--samples", "--config", str(_config(tmp_path))])
    assert code == cli.EXIT_OK
    assert json.loads(out) == {"status": "ok"}
    samples = [json.loads(line) for line in err.splitlines()]
    metrics = {sample["metric"] for sample in samples}
    assert {"orders", "latency", "success", "checks", "js_duration", "js_invocations"} <= metrics
    assert all(sample["tags"]["scenario"] == "cli" for sample in samples)


def test_execution_failure_exits_one(tmp_path: Path) -> None:
    code, out, err = _run(["run", "crash.js", "--config", str(_config(tmp_path))])
    assert code == cli.EXIT_BRIDGE_FAILURE
    assert out == ""
    assert err.startswith("execution failure: failed to execute node flow")
    assert "Error: boom" in err


def test_timeout_exits_one(tmp_path: Path) -> None:
    code, _, err = _run(
        ["run", "sleep.js", "--payload", '{"seconds": 30}', "--timeout", "3s", "--config", str(_config(tmp_path))]
    )
    assert code == cli.EXIT_BRIDGE_FAILURE
    assert err.startswith("timeout failure: node runtime timed out after 3s")


@pytest.mark.parametrize(
    "extra",
    [
        ["--payload", "{not json"],
        ["--env", "NOEQUALS"],
        ["--timeout", "soon"],
    ],
)
def test_usage_errors_exit_two(tmp_path: Path, extra: list[str]) -> None:
    code, out, err = _run(["run", "echo.js", *extra, "--config", str(_config(tmp_path))])
    assert code == cli.EXIT_USAGE
    assert out == ""
    assert err.startswith("error: ")


def test_bad_config_exits_two(tmp_path: Path) -> None:
    path = tmp_path / "bad.yml"
    path.write_text("default_runtime: python\n", encoding="utf-8")
    code, _, err = _run(["run", "echo.js", "--config", str(path)])
    assert code == cli.EXIT_USAGE
    assert "invalid bridge config" in err


def test_main_delegates_to_cli(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["run", "echo.js", "--payload", "3", "--config", str(_config(tmp_path))])
    assert code == cli.EXIT_OK
    assert json.loads(capsys.readouterr().out) == {"echo": 3}
