from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from external_js.bridge.dispatcher import Bridge
from external_js.bridge.errors import BridgeError, CallerError
from external_js.bridge.runtimes import supported_runtimes
from external_js.config.errors import ConfigError
from external_js.config.loader import load_config
from external_js.host.execution import ExecutionUnit
from external_js.host.metrics import InMemorySampleSink, SampleSink
from external_js.observability.adapters.telemetry import StreamSampleSink

# Standalone host: one execution unit, one call, result JSON on stdout.

EXIT_OK = 0
EXIT_BRIDGE_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="external-js", description="Run an external JS flow once")
    commands = parser.add_subparsers(dest="command", required=True)

    run_cmd = commands.add_parser("run", help="Invoke a flow and print its result")
    run_cmd.add_argument("entry", help="Path to the flow module")
    run_cmd.add_argument("--payload", help="JSON payload (default: null)")
    run_cmd.add_argument("--runtime", choices=supported_runtimes())
    run_cmd.add_argument("--timeout", help="Duration such as 500ms, 5s or 1m30s")
    run_cmd.add_argument("--env", action="append", default=[], metavar="KEY=VALUE", help="Extra environment")
    run_cmd.add_argument("--config", help="Path to YAML bridge config")
    run_cmd.add_argument("--scenario", default="cli", help="Scenario label passed to the flow")
    run_cmd.add_argument("--samples", action="store_true", help="Print recorded samples to stderr")
    return parser


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def build_options(args: argparse.Namespace) -> dict[str, object]:
    # Always the options shape, so a payload that looks like options is never misread.
    payload = json.loads(args.payload) if args.payload is not None else None
    options: dict[str, object] = {"payload": payload}
    if args.env:
        options["env"] = _parse_env(args.env)
    if args.timeout:
        options["timeout"] = args.timeout
    if args.runtime:
        options["runtime"] = args.runtime
    return options


def run(argv: Sequence[str] | None = None, *, stdout: TextIO | None = None, stderr: TextIO | None = None) -> int:
    out = stdout if stdout is not None else sys.stdout
    err = stderr if stderr is not None else sys.stderr
    args = parse_args(argv)

    try:
        config = load_config(Path(args.config) if args.config else None)
        options = build_options(args)
    except (ConfigError, ValueError) as exc:
        print(f"error: {exc}", file=err)
        return EXIT_USAGE

    samples: SampleSink = StreamSampleSink(err) if args.samples else InMemorySampleSink()
    unit = ExecutionUnit(id=1, iteration=0, scenario=args.scenario, samples=samples)
    with Bridge(config=config, unit=unit) as bridge:
        try:
            result = bridge.run(args.entry, options)
        except CallerError as exc:
            print(f"error: {exc}", file=err)
            return EXIT_USAGE
        except BridgeError as exc:
            print(f"{exc.kind} failure: {exc}", file=err)
            return EXIT_BRIDGE_FAILURE

    print(json.dumps(result, ensure_ascii=False), file=out)
    return EXIT_OK


def _parse_env(items: list[str]) -> dict[str, str]:
    env: dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ValueError(f"--env expects KEY=VALUE, got {item!r}")
        env[key] = value
    return env
