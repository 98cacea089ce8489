"""Click entry point for Vigil."""

from __future__ import annotations

import asyncio
import json
import sys

import click
import httpx

from vigil import __version__
from vigil.errors import RuleConfigError


@click.group()
@click.version_option(__version__, prog_name="vigil")
def cli() -> None:
    """Vigil: alerting and anomaly-detection engine."""


@cli.command()
def serve() -> None:
    """Run the engine, the scheduler and the admin API until SIGTERM/SIGINT."""
    from vigil.app import main

    asyncio.run(main())


@cli.command("validate-rules")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print the parsed rules as JSON")
def validate_rules(path: str, as_json: bool) -> None:
    """Parse a rules file and report every malformed rule."""
    from vigil.rules.loader import load_rules_file, rule_to_dict

    try:
        rules, errors = load_rules_file(path)
    except (OSError, ValueError, RuleConfigError) as exc:
        click.echo(f"error: {exc}", err=True)
        sys.exit(2)

    if as_json:
        click.echo(json.dumps([rule_to_dict(r) for r in rules], indent=2))
    else:
        for rule in rules:
            state = "enabled" if rule.enabled else "disabled"
            click.echo(f"ok    {rule.rule_id:<32} {rule.category.value:<12} {state}")
    for error in errors:
        click.echo(f"error {error.rule_id:<32} {error.reason}", err=True)

    click.echo(f"{len(rules)} valid, {len(errors)} invalid", err=True)
    sys.exit(1 if errors else 0)


@cli.command()
@click.argument("pass_name", metavar="PASS")
@click.option("--url", default="http://localhost:8080", show_default=True, help="Base URL of a running Vigil")
@click.option("--timeout", default=60.0, type=float, show_default=True)
def trigger(pass_name: str, url: str, timeout: float) -> None:
    """Run PASS (alerts, escalations, suppressions, analysis) on a running server now."""
    endpoint = f"{url.rstrip('/')}/api/v1/passes/{pass_name}/trigger"
    try:
        response = httpx.post(endpoint, timeout=timeout)
    except httpx.HTTPError as exc:
        click.echo(f"error: {exc}", err=True)
        sys.exit(2)

    try:
        body = response.json()
    except ValueError:
        click.echo(f"error: non-JSON response ({response.status_code})", err=True)
        sys.exit(2)
    click.echo(json.dumps(body, indent=2))
    if not response.is_success or not body.get("success", False):
        sys.exit(1)
