from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from external_js.bridge.dispatcher import Bridge
from external_js.bridge.errors import ExecutionError
from external_js.guest import load_runner_script
from external_js.host.execution import ExecutionUnit
from external_js.host.metrics import InMemorySampleSink

# These run the shipped runner inside real runtimes and are skipped when a runtime is absent.
requires_node = pytest.mark.skipif(shutil.which("node") is None, reason="node is not installed")
requires_deno = pytest.mark.skipif(shutil.which("deno") is None, reason="deno is not installed")


def _flow(tmp_path: Path, name: str, source: str) -> str:
    path = tmp_path / name
    path.write_text(source, encoding="utf-8")
    return str(path)


def _bridge() -> tuple[Bridge, InMemorySampleSink]:
    sink = InMemorySampleSink()
    return Bridge(unit=ExecutionUnit(id=4, iteration=2, scenario="guest", samples=sink)), sink


def test_runner_script_is_packaged() -> None:
    script = load_runner_script()
    assert "__RESULT_START__" in script
    assert "__bridge_metrics__" in script


@requires_node
def test_default_export_receives_payload_and_context(tmp_path: Path) -> None:
    entry = _flow(
        tmp_path,
        "echo.mjs",
        "export default async ({ payload, env, execution }) => ({ payload, vu: execution.vu, hasEnv: !!env.PATH });\n",
    )
    bridge, _ = _bridge()
    result = bridge.run(entry, {"payload": {"user": "alice", "n": [1, 2]}})
    assert result == {
        "payload": {"user": "alice", "n": [1, 2]},
        "vu": {"id": 4, "iteration": 2, "scenario": "guest"},
        "hasEnv": True,
    }


@requires_node
def test_commonjs_function_export(tmp_path: Path) -> None:
    entry = _flow(tmp_path, "flow.cjs", "module.exports = (ctx) => ({ doubled: ctx.payload * 2 });\n")
    bridge, _ = _bridge()
    assert bridge.run(entry, 21) == {"doubled": 42}


@requires_node
def test_entry_without_extension_resolves_to_js(tmp_path: Path) -> None:
    _flow(tmp_path, "plain.js", "module.exports.handler = async () => ({ ok: true });\n")
    bridge, _ = _bridge()
    assert bridge.run(str(tmp_path / "plain"), None) == {"ok": True}


@requires_node
def test_handler_uses_ambient_metrics_and_checks(tmp_path: Path) -> None:
    entry = _flow(
        tmp_path,
        "telemetry.mjs",
        "export const handler = async () => {\n"
        "  metrics.counter('requests').add(3, { route: '/a' });\n"
        "  await new Promise((resolve) => setTimeout(resolve, 5));\n"
        "  metrics.rate('ok_rate').add(true);\n"
        "  checks.check('a', true);\n"
        "  checks.check('b', false);\n"
        "  checks.check('c', 'yes');\n"
        "  return { done: true };\n"
        "};\n",
    )
    bridge, sink = _bridge()
    result = bridge.run(entry, {})
    assert result == {"done": True}
    (requests,) = sink.for_metric("requests")
    assert requests.value == 3.0
    assert requests.tags["route"] == "/a"
    assert [sample.value for sample in sink.for_metric("ok_rate")] == [1.0]
    assert [(s.tags["check"], s.value) for s in sink.for_metric("checks")] == [("a", 1.0), ("b", 0.0), ("c", 1.0)]


@requires_node
def test_non_object_result_becomes_empty_object(tmp_path: Path) -> None:
    entry = _flow(tmp_path, "number.mjs", "export default () => 42;\n")
    bridge, _ = _bridge()
    assert bridge.run(entry, {}) == {}


@requires_node
def test_missing_module_names_attempted_path(tmp_path: Path) -> None:
    missing = tmp_path / "nope.js"
    bridge, _ = _bridge()
    with pytest.raises(ExecutionError) as exc_info:
        bridge.run(str(missing), {})
    assert f"Flow not found: {missing}" in exc_info.value.output
    assert exc_info.value.exit_code == 1


@requires_node
def test_non_callable_export_names_the_type_found(tmp_path: Path) -> None:
    entry = _flow(tmp_path, "config.mjs", "export default { retries: 3 };\n")
    bridge, _ = _bridge()
    with pytest.raises(ExecutionError) as exc_info:
        bridge.run(entry, {})
    assert "default export of type object" in exc_info.value.output


@requires_node
def test_non_callable_handler_names_the_type_found(tmp_path: Path) -> None:
    entry = _flow(tmp_path, "handler.mjs", "export const handler = 42;\n")
    bridge, _ = _bridge()
    with pytest.raises(ExecutionError) as exc_info:
        bridge.run(entry, {})
    assert "handler export of type number" in exc_info.value.output


@requires_node
def test_frozen_result_keeps_metrics_and_checks(tmp_path: Path) -> None:
    entry = _flow(
        tmp_path,
        "frozen.mjs",
        "export default () => {\n"
        "  metrics.counter('hits').add(1);\n"
        "  checks.check('a', true);\n"
        "  return Object.freeze({ ok: 1 });\n"
        "};\n",
    )
    bridge, sink = _bridge()
    assert bridge.run(entry, {}) == {"ok": 1}
    assert [sample.value for sample in sink.for_metric("hits")] == [1.0]
    assert [(s.tags["check"], s.value) for s in sink.for_metric("checks")] == [("a", 1.0)]


@requires_node
def test_thrown_error_carries_stack_trace(tmp_path: Path) -> None:
    entry = _flow(tmp_path, "boom.mjs", "export default () => { throw new Error('kaboom'); };\n")
    bridge, _ = _bridge()
    with pytest.raises(ExecutionError) as exc_info:
        bridge.run(entry, {})
    assert "Error: kaboom" in exc_info.value.output
    assert "boom.mjs" in exc_info.value.output


@requires_node
def test_user_logging_does_not_disturb_the_result(tmp_path: Path) -> None:
    entry = _flow(
        tmp_path,
        "chatty.mjs",
        "export default () => { console.log('hello'); console.error('warn'); return { ok: 1 }; };\n",
    )
    bridge, _ = _bridge()
    assert bridge.run(entry, {}) == {"ok": 1}


@requires_deno
def test_deno_identifier_resolution(tmp_path: Path) -> None:
    entry = _flow(tmp_path, "lib.deno.ts", "export default (ctx: { payload: number }) => ({ got: ctx.payload });\n")
    bridge, _ = _bridge()
    assert bridge.run(entry, 7) == {"got": 7}
