#!/usr/bin/env python3
"""
Command-line entry point for meshprobe.

- ``probe``: poll a live data-plane endpoint until it answers as expected
- ``demo``: run the apply-then-poll flow against the loopback simulator
"""

import asyncio
import json
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from meshprobe.core.config import get_settings
from meshprobe.core.errors import RetryPolicyError
from meshprobe.core.logging import configure_logging
from meshprobe.core.outcome import Outcome
from meshprobe.core.poller import poll_until_converged_async
from meshprobe.core.probes import EndpointProbe
from meshprobe.core.retry_policy import RetryPolicy
from meshprobe.core.transport import AiohttpEndpoint, CallRequest, CallType
from meshprobe.sim.scenario import run_gateway_scenario

console = Console()


def setup_logging(verbose: bool = False) -> None:
    configure_logging(verbose=verbose, colorize=True)


def build_policy(
    timeout: float | None,
    delay: float | None,
    max_attempts: int | None,
    converge: int | None,
) -> RetryPolicy:
    """Command-line options override the settings-derived default policy."""
    overrides = {
        "retry_timeout": timeout,
        "retry_delay": delay,
        "retry_max_attempts": max_attempts,
        "retry_converge": converge,
    }
    settings = get_settings().model_copy(
        update={name: value for name, value in overrides.items() if value is not None}
    )
    try:
        return settings.retry_policy()
    except RetryPolicyError as e:
        raise click.UsageError(str(e)) from e


def display_outcome(title: str, outcome: Outcome, policy: RetryPolicy) -> None:
    table = Table(title=title)
    table.add_column("Status", justify="center")
    table.add_column("Attempts", justify="right")
    table.add_column("Elapsed", justify="right")
    table.add_column("Policy", style="cyan")
    table.add_column("Reason", style="yellow")

    if outcome.is_converged:
        status = "[green]✅ Converged[/green]"
    else:
        status = f"[red]❌ Failed ({outcome.failure_kind.value})[/red]"

    table.add_row(
        status,
        str(outcome.attempts),
        f"{outcome.elapsed:.3f}s",
        policy.describe(),
        escape(outcome.reason),
    )
    console.print(table)


def emit(title: str, outcome: Outcome, policy: RetryPolicy, output: str) -> None:
    if output == "json":
        click.echo(
            json.dumps(
                {
                    "status": outcome.status.value,
                    "attempts": outcome.attempts,
                    "elapsed": round(outcome.elapsed, 6),
                    "failure_kind": outcome.failure_kind.value
                    if outcome.failure_kind
                    else None,
                    "reason": outcome.reason,
                },
                indent=2,
            )
        )
    else:
        display_outcome(title, outcome, policy)

    if not outcome.is_converged:
        sys.exit(1)


output_option = click.option(
    "--output",
    "-o",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)


def retry_options(fn):
    fn = click.option("--timeout", type=float, help="Deadline in seconds")(fn)
    fn = click.option("--delay", type=float, help="Seconds between attempts")(fn)
    fn = click.option("--max-attempts", type=int, help="Attempt budget")(fn)
    fn = click.option(
        "--converge", type=int, help="Consecutive successes required"
    )(fn)
    return fn


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, verbose: bool):
    """meshprobe: verify that configuration changes reach the data plane."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("address")
@click.option("--host", required=True, help="Virtual host sent in the Host header")
@click.option("--path", default="/", show_default=True, help="Request path")
@click.option("--expect-status", default=200, show_default=True, help="Expected status")
@click.option("--body-contains", help="Substring the body must contain")
@click.option("--tls", is_flag=True, help="Call over TLS")
@retry_options
@output_option
def probe(
    address: str,
    host: str,
    path: str,
    expect_status: int,
    body_contains: str | None,
    tls: bool,
    timeout: float | None,
    delay: float | None,
    max_attempts: int | None,
    converge: int | None,
    output: str,
):
    """Poll ADDRESS until HOST/PATH answers with the expected status."""
    policy = build_policy(timeout, delay, max_attempts, converge)
    request = CallRequest(
        host=host,
        path=path,
        address=address,
        call_type=CallType.TLS if tls else CallType.PLAIN_TEXT,
        timeout=get_settings().call_timeout,
    )
    endpoint_probe = EndpointProbe(
        AiohttpEndpoint(),
        request,
        expected_status=expect_status,
        body_contains=body_contains,
    )

    outcome = asyncio.run(poll_until_converged_async(endpoint_probe, policy))
    emit(f"Probe {endpoint_probe.description}", outcome, policy, output)


@cli.command()
@click.option(
    "--propagation-delay",
    default=0.2,
    show_default=True,
    help="Seconds before applied config reaches the gateway",
)
@retry_options
@output_option
def demo(
    propagation_delay: float,
    timeout: float | None,
    delay: float | None,
    max_attempts: int | None,
    converge: int | None,
    output: str,
):
    """Apply a route to the loopback simulator and wait for it to converge."""
    policy = build_policy(timeout, delay, max_attempts, converge)
    outcome = asyncio.run(run_gateway_scenario(propagation_delay, policy))
    emit("Loopback gateway convergence", outcome, policy, output)


def main():
    cli()


if __name__ == "__main__":
    main()
