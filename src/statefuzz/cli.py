"""CLI entry point for statefuzz."""

from __future__ import annotations

from contextlib import nullcontext
from pathlib import Path
from typing import Any, NoReturn

import click
from pydantic import ValidationError

from statefuzz import __version__
from statefuzz.adapters import register_builtin_adapters
from statefuzz.core.campaign_log import campaign_log_context
from statefuzz.core.config import CampaignConfigModel, ConfigManager
from statefuzz.core.exceptions import PluginLoadError, StateFuzzError
from statefuzz.core.health import HealthChecker
from statefuzz.core.plugin_loader import PluginLoader
from statefuzz.core.registry import ComponentRegistry
from statefuzz.core.schema import CampaignResult, CampaignState, CheckpointPolicy, Outcome
from statefuzz.engine.campaign import CampaignController
from statefuzz.engine.executor import SequenceExecutor
from statefuzz.reporters import register_builtin_reporters
from statefuzz.utils import load_seed_sequences, read_counterexample, resolve_adapter

EXIT_COUNTEREXAMPLE = 1
EXIT_ERROR = 2


def _fail(message: str, code: int = EXIT_ERROR) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    raise SystemExit(code)


def _load_env_and_plugins(
    project_root: Path | None = None,
) -> tuple[ConfigManager, ComponentRegistry, list[tuple[Path, PluginLoadError]]]:
    """Load .env and YAML config, register built-ins and load plugins; return config, registry, load errors."""
    config = ConfigManager(project_root=project_root)
    try:
        config.load()
    except StateFuzzError as e:
        _fail(str(e))
    registry = ComponentRegistry()
    register_builtin_adapters(registry)
    register_builtin_reporters(registry)
    root = project_root or config.project_root
    dirs = [root / d for d in config.config.plugin_dirs]
    existing = [d for d in dirs if d.exists()]
    load_errors: list[tuple[Path, PluginLoadError]] = []
    if existing:
        loader = PluginLoader(existing, registry)
        loader.load_all()
        load_errors = loader.load_errors
    return config, registry, load_errors


def _echo_result(result: CampaignResult) -> None:
    summary = result.summary
    click.echo(f"Campaign {result.state.value}.")
    click.echo(
        f"  sequences: {summary.iterations}  calls: {summary.calls}  rejections: {summary.rejections}"
        f"  faults: {summary.faults} (timeouts: {summary.timeouts})"
    )
    click.echo(
        f"  coverage: {summary.coverage}  corpus: {summary.corpus_size}  elapsed: {summary.elapsed_seconds:.2f}s"
    )
    for cx in result.counterexamples:
        click.echo(f"Invariant violated: {cx.invariant_id}")
        if cx.description:
            click.echo(f"  {cx.description}")
        click.echo(
            f"  {cx.sequence.length} call(s) (shrunk from {cx.original_length}), checkpoint {cx.checkpoint}:"
        )
        for signature in cx.sequence.signatures():
            click.echo(f"    {signature}")
        if cx.worker_id is not None:
            click.echo(f"  worker {cx.worker_id}, seed {cx.seed}, draws {cx.draws}")


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """statefuzz: stateful invariant fuzzing with automatic shrinking."""
    pass


@main.command()
@click.option("--verbose", "-v", is_flag=True, help="Show detailed output (messages, suggestions).")
@click.option("--skip-plugins", is_flag=True, help="Skip plugin loading check.")
@click.option("--skip-adapter", is_flag=True, help="Skip adapter, determinism and invariant checks.")
def check(verbose: bool, skip_plugins: bool, skip_adapter: bool) -> None:
    """Verify plugins and the configured adapter; show suggestions for failures."""
    config, registry, load_errors = _load_env_and_plugins()
    checker = HealthChecker(config=config, registry=registry, load_errors=load_errors)
    results = checker.check_all(skip_plugins=skip_plugins, skip_adapter=skip_adapter)
    for r in results:
        status = "OK" if r.ok else "FAIL"
        click.echo(f"  {r.name}: {status}")
        if verbose or not r.ok:
            click.echo(f"    {r.message}")
        if (verbose or not r.ok) and r.suggestion:
            click.echo(f"    -> {r.suggestion}")
    if all(r.ok for r in results):
        click.echo("All checks passed.")
    else:
        click.echo("Some checks failed. Fix the issues above or follow the suggested steps.", err=True)
        raise SystemExit(1)


@main.group()
def plugins() -> None:
    """List or manage plugins."""
    pass


@plugins.command("list")
def plugins_list() -> None:
    """List available components (SUT adapters, reporters)."""
    _, registry, load_errors = _load_env_and_plugins()
    avail = registry.list_available()
    click.echo("Available components:")
    for kind, names in avail.items():
        label = kind.replace("_", " ").title()
        click.echo(f"  {label}: {', '.join(names) or '(none)'}")
    for path, error in load_errors:
        click.echo(f"  Failed: {path.name}: {error}", err=True)


@main.command()
@click.option("--adapter", "adapter_name", help="Registered SUT adapter name.")
@click.option("--model", "model_path", type=click.Path(path_type=Path, exists=True, dir_okay=False), help="Declarative YAML/JSON model file.")
@click.option("--workers", "worker_count", type=click.IntRange(min=1), help="Number of parallel workers.")
@click.option("--iterations", "iteration_budget", type=click.IntRange(min=1), help="Sequences per worker.")
@click.option("--time-budget", "time_budget", type=float, help="Wall-clock limit in seconds.")
@click.option("--seed", type=int, help="Campaign seed.")
@click.option("--checkpoint", "checkpoint_policy", type=click.Choice([p.value for p in CheckpointPolicy]), help="When invariants are evaluated.")
@click.option("--max-length", "max_sequence_length", type=click.IntRange(min=1), help="Maximum calls per generated sequence.")
@click.option("--continue-after-failure", is_flag=True, help="Keep fuzzing after a violation; report one counterexample per invariant.")
@click.option("--seed-file", "seed_files", multiple=True, type=click.Path(path_type=Path, exists=True, dir_okay=False), help="Counterexample JSON to seed the corpus with (repeatable).")
@click.option("--output", "output_path", type=click.Path(path_type=Path), help="Write the campaign result as JSON to this file.")
@click.option("--log-file", type=click.Path(path_type=Path), help="Write the campaign log to this file.")
@click.option("--verbose", "-v", is_flag=True, help="Verbose log (DEBUG level).")
def run(
    adapter_name: str | None,
    model_path: Path | None,
    continue_after_failure: bool,
    seed_files: tuple[Path, ...],
    output_path: Path | None,
    log_file: Path | None,
    verbose: bool,
    **overrides: Any,
) -> None:
    """Run a fuzzing campaign. Exit code 1 when a counterexample is found, 2 on errors."""
    config, registry, _ = _load_env_and_plugins()
    settings = config.config.campaign.model_dump()
    settings.update({k: v for k, v in overrides.items() if v is not None})
    if continue_after_failure:
        settings["stop_on_first_failure"] = False
    try:
        campaign = CampaignConfigModel(**settings)
    except ValidationError as e:
        _fail(f"Invalid campaign settings: {e}")

    try:
        adapter = resolve_adapter(registry, config.config, adapter_name=adapter_name, model_path=model_path)
        seeds = load_seed_sequences(seed_files, adapter)
        controller = CampaignController(adapter, config=campaign, seeds=seeds)
    except StateFuzzError as e:
        _fail(str(e))

    log_context = campaign_log_context(log_file, verbose) if log_file else nullcontext()
    with log_context:
        result = controller.run()

    _echo_result(result)
    if output_path:
        for fmt in config.config.reporters:
            try:
                reporter = registry.get_reporter(fmt)
            except StateFuzzError as e:
                _fail(str(e))
            target = output_path if fmt == "json" else output_path.with_suffix(f".{fmt}")
            reporter.report_result(result, target)
            click.echo(f"Result ({fmt}): {target}")
    if log_file:
        click.echo(f"Log: {log_file}")

    if result.state == CampaignState.ERRORED:
        _fail(result.error or "campaign errored")
    if result.state == CampaignState.FAILED:
        raise SystemExit(EXIT_COUNTEREXAMPLE)


@main.command()
@click.argument("counterexample", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--adapter", "adapter_name", help="Registered SUT adapter name.")
@click.option("--model", "model_path", type=click.Path(path_type=Path, exists=True, dir_okay=False), help="Declarative YAML/JSON model file.")
@click.option("--checkpoint", "checkpoint_policy", type=click.Choice([p.value for p in CheckpointPolicy]), help="When invariants are evaluated.")
def replay(
    counterexample: Path,
    adapter_name: str | None,
    model_path: Path | None,
    checkpoint_policy: str | None,
) -> None:
    """Replay a saved counterexample. Exit code 1 when the violation reproduces."""
    config, registry, _ = _load_env_and_plugins()
    try:
        adapter = resolve_adapter(registry, config.config, adapter_name=adapter_name, model_path=model_path)
        data = read_counterexample(counterexample)
        (sequence,) = load_seed_sequences([counterexample], adapter)
    except StateFuzzError as e:
        _fail(str(e))

    policy = CheckpointPolicy(checkpoint_policy) if checkpoint_policy else config.config.campaign.checkpoint_policy
    executor = SequenceExecutor(adapter, adapter.list_invariants(), policy)
    result = executor.run(sequence)
    for step in result.steps:
        invocation = sequence.invocations[step.position]
        marker = "" if step.outcome == Outcome.OK else f"  [{step.outcome.value}] {step.detail}"
        click.echo(f"  {step.position}: {invocation.signature}{marker}")
    if result.faulted:
        _fail(f"Adapter fault during replay: {result.fault}")

    invariant_id = data.get("invariant_id")
    if invariant_id in result.violations:
        click.echo(f"Reproduced: {invariant_id} violated at checkpoint {result.violations[invariant_id]}")
        raise SystemExit(EXIT_COUNTEREXAMPLE)
    first = result.first_violation()
    if first is not None:
        other_id, checkpoint = first
        click.echo(f"Other invariant violated: {other_id} at checkpoint {checkpoint}")
        raise SystemExit(EXIT_COUNTEREXAMPLE)
    click.echo(f"Did not reproduce: {invariant_id} holds after {sequence.length} call(s).")
