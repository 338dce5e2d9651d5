"""
factorysim Command-Line Interface.

Runs single simulations, strategy searches and the analytical baseline
from the terminal, printing summaries with rich.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from factorysim import __version__
from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.engine.rules import Rule, RulesEngine
from factorysim.engine.simulation import SimulationResult, run_simulation
from factorysim.engine.validation import Severity, validate_business_rules
from factorysim.io import (
    LoadError,
    SaveError,
    get_checkpoint_path,
    load_strategy,
    save_checkpoint,
    save_result,
    save_strategy,
)
from factorysim.models.state import (
    SimulationState,
    create_business_case_state,
    create_historical_state,
)
from factorysim.models.strategy import Strategy
from factorysim.optimizer import (
    AnalyticalOptimizer,
    BayesianConfig,
    BayesianOptimizer,
    GeneticAlgorithm,
    GeneticConfig,
    MultiRunConfig,
    MultiRunError,
    MultiRunOptimizer,
)

console = Console()

SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.MAJOR: "yellow",
    Severity.WARNING: "dim",
}


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="factorysim")
@click.option("--verbose", "-v", count=True, help="Log progress (-v info, -vv debug)")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Configuration file (.json, .yaml or .yml)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: int, config_path: Optional[str]) -> None:
    """
    factorysim - day-stepped factory simulation and strategy search
    """
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    ctx.ensure_object(dict)
    if config_path:
        try:
            ctx.obj["config"] = FactoryConfig.from_file(config_path)
        except Exception as e:
            console.print(f"[red]Invalid configuration file: {e}[/red]")
            sys.exit(1)
    else:
        ctx.obj["config"] = get_default_config()


def _initial_state(kind: str, seed: Optional[int], config: FactoryConfig) -> SimulationState:
    if kind == "business-case":
        return create_business_case_state(seed=seed, config=config)
    return create_historical_state(config)


def _load_rules(path: str) -> RulesEngine:
    """Build a rules engine from a YAML or JSON list of rules."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, dict):
        data = data.get("rules", [])
    return RulesEngine([Rule.model_validate(item) for item in data])


# =============================================================================
# Commands
# =============================================================================


@cli.command()
@click.option("--strategy", "-s", "strategy_path", type=click.Path(exists=True, dir_okay=False),
              help="Strategy JSON file (defaults to the built-in strategy)")
@click.option("--end-day", "-e", type=int, default=None, help="Last simulated day")
@click.option("--seed", type=int, default=None, help="Random seed for demand")
@click.option("--initial", type=click.Choice(["historical", "business-case"]), default="historical",
              help="Starting position")
@click.option("--rules", "rules_path", type=click.Path(exists=True, dir_okay=False),
              help="Reactive rules file (YAML or JSON)")
@click.option("--dynamic-policies/--static-policies", default=False,
              help="Recompute EOQ/ROP/EPQ as conditions change")
@click.option("--output", "-o", type=click.Path(), help="Write the result JSON here")
@click.pass_context
def simulate(
    ctx: click.Context,
    strategy_path: Optional[str],
    end_day: Optional[int],
    seed: Optional[int],
    initial: str,
    rules_path: Optional[str],
    dynamic_policies: bool,
    output: Optional[str],
) -> None:
    """Run one simulation and print its summary."""
    config: FactoryConfig = ctx.obj["config"]

    try:
        strategy = load_strategy(Path(strategy_path)) if strategy_path else Strategy()
    except LoadError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    rules_engine = None
    if rules_path:
        try:
            rules_engine = _load_rules(rules_path)
        except Exception as e:
            console.print(f"[red]Invalid rules file: {e}[/red]")
            sys.exit(1)

    result = run_simulation(
        strategy,
        end_day=end_day,
        initial_state=_initial_state(initial, seed, config),
        random_seed=seed,
        config=config,
        rules_engine=rules_engine,
        dynamic_policies=dynamic_policies,
    )
    _display_result(result)
    _display_business_rules(result, config)

    if output:
        try:
            path = save_result(result, Path(output), name=strategy_path or "default")
            console.print(f"[green]Result saved to {path}[/green]")
        except SaveError as e:
            console.print(f"[red]{e}[/red]")
            sys.exit(1)


@cli.command()
@click.option("--method", "-m", type=click.Choice(["genetic", "bayesian", "multi-run"]), default="bayesian",
              help="Search method")
@click.option("--iterations", "-n", type=int, default=None,
              help="Generations (genetic, multi-run) or iterations (bayesian)")
@click.option("--population", "-p", type=int, default=None, help="Population size (genetic, multi-run)")
@click.option("--runs", type=int, default=5, help="Independent runs (multi-run)")
@click.option("--seed", type=int, default=None, help="Random seed")
@click.option("--end-day", "-e", type=int, default=None, help="Last simulated day")
@click.option("--initial", type=click.Choice(["historical", "business-case"]), default="historical",
              help="Starting position")
@click.option("--checkpoint-dir", type=click.Path(file_okay=False), default=None,
              help="Write search checkpoints here (bayesian)")
@click.option("--validate-runs", type=int, default=0, help="Re-run the best policy this many times (bayesian)")
@click.option("--output", "-o", type=click.Path(), help="Write the best strategy JSON here")
@click.pass_context
def optimize(
    ctx: click.Context,
    method: str,
    iterations: Optional[int],
    population: Optional[int],
    runs: int,
    seed: Optional[int],
    end_day: Optional[int],
    initial: str,
    checkpoint_dir: Optional[str],
    validate_runs: int,
    output: Optional[str],
) -> None:
    """Search for a high-scoring strategy."""
    config: FactoryConfig = ctx.obj["config"]
    initial_state = _initial_state(initial, seed, config)

    console.print()
    console.print(Panel.fit(f"[bold blue]Strategy search[/bold blue]\n[dim]method: {method}[/dim]",
                            border_style="blue"))

    if method == "bayesian":
        best_strategy, best_fitness, final = _run_bayesian(
            config, initial_state, iterations, seed, end_day, checkpoint_dir, validate_runs
        )
    else:
        options = {"random_seed": seed, "end_day": end_day}
        if iterations is not None:
            options["generations"] = iterations
        if population is not None:
            options["population_size"] = population
            options["elite_count"] = max(1, min(GeneticConfig().elite_count, population // 5))
        genetic = GeneticConfig(**options)
        if method == "genetic":
            best_strategy, best_fitness, final = _run_genetic(config, initial_state, genetic)
        else:
            try:
                result = MultiRunOptimizer(
                    MultiRunConfig(num_runs=runs, genetic=genetic), config, initial_state
                ).run()
            except MultiRunError as e:
                console.print(f"[red]{e}[/red]")
                sys.exit(1)
            console.print(
                f"Runs: {len(result.runs)}  mean {result.stats.mean:,.2f}  "
                f"std {result.stats.std_dev:,.2f}  best vs mean +{result.stats.improvement:.1f}%"
            )
            best_run = result.runs[result.best_run_index]
            best_strategy, best_fitness, final = result.best_strategy, result.best_fitness, best_run.final_simulation

    if best_strategy is None:
        console.print("[red]No valid strategy found[/red]")
        sys.exit(1)

    console.print(f"[green]Best fitness:[/green] {best_fitness:,.2f}")
    if final is not None:
        _display_result(final)

    if output:
        try:
            path = save_strategy(best_strategy, Path(output), name=f"{method} search")
            console.print(f"[green]Strategy saved to {path}[/green]")
        except SaveError as e:
            console.print(f"[red]{e}[/red]")
            sys.exit(1)


@cli.command()
@click.option("--output", "-o", type=click.Path(), required=True, help="Write the baseline strategy JSON here")
@click.pass_context
def baseline(ctx: click.Context, output: str) -> None:
    """Write the closed-form analytical baseline strategy."""
    strategy = AnalyticalOptimizer(ctx.obj["config"]).generate_baseline()

    table = Table(title="Analytical Baseline", box=None)
    table.add_column("Policy")
    table.add_column("Value", justify="right")
    table.add_row("Order quantity", f"{strategy.order_quantity:,}")
    table.add_row("Reorder point", f"{strategy.reorder_point:,}")
    table.add_row("Standard batch size", f"{strategy.standard_batch_size:,}")
    table.add_row("Custom MCE allocation", f"{strategy.mce_allocation_custom:.2f}")
    console.print(table)

    try:
        path = save_strategy(strategy, Path(output), name="analytical baseline")
    except SaveError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(f"[green]Baseline saved to {path}[/green]")


# =============================================================================
# Search runners
# =============================================================================


def _run_genetic(config: FactoryConfig, initial_state: SimulationState, settings: GeneticConfig):
    ga = GeneticAlgorithm(settings, config, initial_state)
    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Generations", total=settings.generations)

        def on_progress(generation: int, best: float, average: float) -> None:
            progress.update(task, completed=generation + 1,
                            description=f"Generations (best {best:,.0f})")

        result = ga.run(on_progress=on_progress)
    return result.best_strategy, result.best_fitness, result.final_simulation


def _run_bayesian(
    config: FactoryConfig,
    initial_state: SimulationState,
    iterations: Optional[int],
    seed: Optional[int],
    end_day: Optional[int],
    checkpoint_dir: Optional[str],
    validate_runs: int,
):
    options = {"random_seed": seed, "end_day": end_day}
    if iterations is not None:
        options["total_iterations"] = iterations
        options["random_exploration"] = min(BayesianConfig().random_exploration, iterations)
    settings = BayesianConfig(**options)
    optimizer = BayesianOptimizer(settings, config, initial_state)

    on_checkpoint = None
    if checkpoint_dir:
        def on_checkpoint(checkpoint) -> None:
            save_checkpoint(checkpoint, get_checkpoint_path(Path(checkpoint_dir), "bayesian", checkpoint.iteration))

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Iterations", total=settings.total_iterations)

        def on_progress(iteration: int, total: int, phase: str, best: float) -> None:
            progress.update(task, completed=iteration,
                            description=f"{phase.capitalize()} (best {best:,.0f})")

        try:
            result = optimizer.run(on_progress=on_progress, on_checkpoint=on_checkpoint)
        except SaveError as e:
            console.print(f"[red]{e}[/red]")
            sys.exit(1)

    if result.action_summary:
        table = Table(title="Scheduled Actions", box=None)
        table.add_column("Action")
        table.add_column("Count", justify="right")
        for kind, count in sorted(result.action_summary.items()):
            table.add_row(kind, str(count))
        console.print(table)

    if validate_runs > 0 and result.best_policy is not None:
        summary = optimizer.validate(result.best_policy, runs=validate_runs)
        console.print(
            f"Validation over {validate_runs} runs: mean {summary.mean:,.2f} "
            f"std {summary.std:,.2f} range {summary.min:,.2f} to {summary.max:,.2f}"
        )
    return result.best_strategy, result.best_fitness, result.final_simulation


# =============================================================================
# Display Helpers
# =============================================================================


def _display_result(result: SimulationResult) -> None:
    """Display summary metrics of a run."""
    m = result.metrics
    table = Table(title=f"Simulation Summary (day {m.final_day})", box=None)
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    table.add_row("Cash", f"${m.final_cash:,.2f}")
    table.add_row("Debt", f"${m.final_debt:,.2f}")
    table.add_row("Net worth", f"${m.net_worth:,.2f}")
    table.add_row("Total revenue", f"${m.total_revenue:,.2f}")
    table.add_row("Interest paid", f"${m.total_interest_paid:,.2f}")
    table.add_row("Service level", f"{m.service_level:.1%}")
    table.add_row("Avg delivery (days)", f"{m.average_delivery_time:.2f}")
    table.add_row("Rejected custom orders", f"{m.rejected_custom_orders:,}")
    table.add_row("Stockout days", f"{m.stockout_days:,}")
    table.add_row("Standard units", f"{m.standard_units_completed:,}")
    table.add_row("Custom orders", f"{m.custom_orders_completed:,}")
    table.add_row("Machines", ", ".join(f"{k} {v}" for k, v in m.machines.items()))

    console.print()
    console.print(table)


def _display_business_rules(result: SimulationResult, config: FactoryConfig) -> None:
    """Display business rule violations of a run."""
    rules = validate_business_rules(result.state, config)
    console.print()
    if not rules.violations:
        console.print("[green]All business rules passed[/green]")
        return

    table = Table(title="Business Rules", box=None)
    table.add_column("Severity")
    table.add_column("Rule")
    table.add_column("Detail")
    for violation in rules.violations:
        style = SEVERITY_STYLES[violation.severity]
        table.add_row(f"[{style}]{violation.severity.value}[/{style}]", violation.rule, violation.message)
    console.print(table)
    status = "[green]valid[/green]" if rules.valid else "[red]invalid[/red]"
    console.print(f"Critical: {rules.critical_count}  Major: {rules.major_count}  "
                  f"Warning: {rules.warning_count}  ({status})")


# =============================================================================
# Entry Point
# =============================================================================


if __name__ == "__main__":
    cli()
