"""CLI entry point for soter.

Works on YAML machine files:

    states: [stopped, walking]        # optional, fixes state order
    transitions:
      walk:
        origins: stopped
        destination: walking
        conditions: has_energy
      stop: {origins: walking, destination: stopped}
    context:                          # plain data driven by `run`
      state: stopped
      has_energy: true
    options:                          # MachineConfig plain-data fields
      verbose: true
      logging: {level: info}          # used unless --log-level is given
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, NoReturn, Optional

import click

from soter import __version__
from soter.config.settings import LoggingConfig, MachineConfig
from soter.instructions import Instructions, load_yaml_document
from soter.machine import StateMachine
from soter.utils.logging import configure_logging, get_logger


class Context:
    """CLI context for sharing state between commands."""

    def __init__(self, log_level: Optional[str], log_format: Optional[str]) -> None:
        self.log_level = log_level
        self.log_format = log_format
        self.logger = get_logger("cli")

    def apply_logging(self, settings: LoggingConfig) -> None:
        """Reconfigure logging from a machine file; command-line flags win."""
        configure_logging(
            level=self.log_level or settings.level,
            format_type=self.log_format or settings.format,
        )


pass_context = click.make_pass_decorator(Context)


def output_json(data: dict) -> None:
    """Output JSON to stdout."""
    click.echo(json.dumps(data, indent=2, default=str))


def fail(message: str) -> NoReturn:
    """Report an error as JSON and exit non-zero."""
    output_json({
        "status": "error",
        "message": message,
    })
    sys.exit(1)


def load_machine(
    ctx: Context,
    path: Path,
    state: Optional[str] = None,
) -> StateMachine:
    """
    Build a machine over the plain-data context of a machine file.

    A ``logging`` block in the file's options reconfigures logging.

    Args:
        ctx: CLI context
        path: YAML machine file
        state: Overrides the context's starting state

    Returns:
        StateMachine driving a dict context
    """
    document = load_yaml_document(path)
    if document.is_err():
        fail(str(document.unwrap_err()))
    data = document.unwrap()

    table = Instructions.from_dict(data)
    if table.is_err():
        fail(str(table.unwrap_err()))

    options = data.get("options") or {}
    config = MachineConfig.from_dict(options)
    if config.is_err():
        fail(str(config.unwrap_err()))
    if "logging" in options:
        ctx.apply_logging(config.unwrap().logging)

    context: dict[str, Any] = dict(data.get("context") or {})
    key = config.unwrap().key
    if state is not None:
        context[key] = state
    if context.get(key) is None:
        states = table.unwrap().states
        if not states:
            fail("Machine file defines no states")
        context[key] = states[0]

    return StateMachine(context, table.unwrap(), config.unwrap())


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warn", "error"], case_sensitive=False),
    default=None,
    help="Logging level (default: the machine file's, else warn)",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"], case_sensitive=False),
    default=None,
    help="Log format (default: the machine file's, else text)",
)
@click.version_option(version=__version__)
@click.pass_context
def cli(
    ctx: click.Context,
    log_level: Optional[str],
    log_format: Optional[str],
) -> None:
    """
    soter - inspect and drive finite state machines defined in YAML.
    """
    configure_logging(level=log_level or "warn", format_type=log_format or "text")
    ctx.obj = Context(log_level=log_level, log_format=log_format)


@cli.command()
@click.argument("machine_file", type=click.Path(path_type=Path))
@pass_context
def states(ctx: Context, machine_file: Path) -> None:
    """List the states and triggers of a machine file."""
    machine = load_machine(ctx, machine_file)
    table = machine.instructions

    output_json({
        "status": "success",
        "states": list(table.states),
        "triggers": {
            trigger: [transition.to_dict() for transition in candidates]
            for trigger, candidates in table
        },
    })


@cli.command()
@click.argument("machine_file", type=click.Path(path_type=Path))
@click.option(
    "--state",
    default=None,
    help="Evaluate from this state instead of the file's context",
)
@click.option(
    "--validated-only",
    is_flag=True,
    default=False,
    help="Only list transitions whose conditions are all satisfied",
)
@pass_context
def available(
    ctx: Context,
    machine_file: Path,
    state: Optional[str],
    validated_only: bool,
) -> None:
    """Show the transitions available from the current state."""
    machine = load_machine(ctx, machine_file, state=state)
    transitions = (
        machine.validated_transitions if validated_only
        else machine.potential_transitions
    )

    output_json({
        "status": "success",
        "state": machine.state,
        "transitions": [t.to_dict() for t in transitions],
    })


@cli.command()
@click.argument("machine_file", type=click.Path(path_type=Path))
@click.argument("triggers", nargs=-1, required=True)
@click.option(
    "--state",
    default=None,
    help="Start from this state instead of the file's context",
)
@click.option(
    "--stop-on-failure/--keep-going",
    default=True,
    help="Stop at the first failed trigger",
)
@pass_context
def run(
    ctx: Context,
    machine_file: Path,
    triggers: tuple[str, ...],
    state: Optional[str],
    stop_on_failure: bool,
) -> None:
    """Fire TRIGGERS in order against the file's context."""
    machine = load_machine(ctx, machine_file, state=state)
    ctx.logger.info("run_started", triggers=list(triggers), state=machine.state)

    results = []
    for trigger in triggers:
        result = machine.trigger(trigger, throw_exceptions=False)
        results.append(result)
        if not result.success and stop_on_failure:
            break

    succeeded = all(result.success for result in results)
    output_json({
        "status": "success" if succeeded else "failed",
        "state": machine.state,
        "results": [result.to_dict() for result in results],
    })

    if not succeeded:
        sys.exit(2)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
