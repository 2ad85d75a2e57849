#!/usr/bin/env python3
"""
CLI tool for the 1Password vault operator
Plans and applies vault, group-vault and vault-member resources
"""

import asyncio
import json
import logging
import sys

import click
import yaml
from tabulate import tabulate

from config import get_config
from errors import OperatorError
from opcli.client import get_client
from reconciler import PlanAction, Reconciler, parse_manifest
from resources.registry import get_registry
from state import StateStore

ACTION_SYMBOLS = {
    PlanAction.CREATE: "+",
    PlanAction.UPDATE: "~",
    PlanAction.REPLACE: "-/+",
    PlanAction.DELETE: "-",
    PlanAction.NOOP: " ",
}


def _load_document(filename):
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def _build_reconciler(state_path):
    state = StateStore(state_path).load()
    registry = get_registry()
    registry.discover()
    return Reconciler(client=get_client(), registry=registry, state=state)


def _format_changes(changes):
    return ", ".join(f"{k}: {old!r} -> {new!r}" for k, (old, new) in changes.items())


def _print_plan(plan):
    rows = [
        [ACTION_SYMBOLS[e.action], e.address, e.action.value, _format_changes(e.changes)]
        for e in plan
    ]
    click.echo(tabulate(rows, headers=["", "Address", "Action", "Changes"], tablefmt="grid"))

    counts = {action: 0 for action in PlanAction}
    for e in plan:
        counts[e.action] += 1
    click.echo(
        f"\nPlan: {counts[PlanAction.CREATE]} to create, "
        f"{counts[PlanAction.UPDATE]} to update, "
        f"{counts[PlanAction.REPLACE]} to replace, "
        f"{counts[PlanAction.DELETE]} to delete."
    )


def _print_results(results):
    rows = [
        [
            r.address,
            r.action.value,
            "✓" if r.success else "✗",
            r.resource_id,
            r.message,
        ]
        for r in results
    ]
    click.echo(
        tabulate(rows, headers=["Address", "Action", "OK", "ID", "Message"], tablefmt="grid")
    )


def _fail(message):
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.option("--state", "state_path", default=None, help="Path to the state file")
@click.option("--log-level", default=None, help="Logging level (default: LOG_LEVEL)")
@click.pass_context
def cli(ctx, state_path, log_level):
    """opctl - declarative management of 1Password vaults and memberships"""
    config = get_config()
    logging.basicConfig(
        level=(log_level or config.state.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["state_path"] = state_path or config.state.path


async def _plan(reconciler, desired):
    await reconciler.refresh()
    return reconciler.plan(desired)


@cli.command()
@click.option("--filename", "-f", type=click.Path(exists=True), required=True)
@click.pass_context
def plan(ctx, filename):
    """Show what apply would change"""
    try:
        reconciler = _build_reconciler(ctx.obj["state_path"])
        desired = parse_manifest(_load_document(filename), reconciler.registry)
        entries = asyncio.run(_plan(reconciler, desired))
    except (ValueError, OperatorError, yaml.YAMLError) as e:
        _fail(e)

    _print_plan(entries)


@cli.command()
@click.option("--filename", "-f", type=click.Path(exists=True), required=True)
@click.option("--yes", "-y", is_flag=True, help="Apply without confirmation")
@click.pass_context
def apply(ctx, filename, yes):
    """Apply resources from a YAML/JSON manifest"""
    try:
        reconciler = _build_reconciler(ctx.obj["state_path"])
        desired = parse_manifest(_load_document(filename), reconciler.registry)
        entries = asyncio.run(_plan(reconciler, desired))
    except (ValueError, OperatorError, yaml.YAMLError) as e:
        _fail(e)

    _print_plan(entries)
    if all(e.action == PlanAction.NOOP for e in entries):
        click.echo("No changes.")
        return
    if not yes:
        click.confirm("Apply these changes?", abort=True)

    results = asyncio.run(reconciler.apply(entries))
    _print_results(results)
    if not all(r.success for r in results):
        sys.exit(1)


@cli.command(name="import")
@click.argument("address")
@click.argument("resource_id")
@click.pass_context
def import_(ctx, address, resource_id):
    """Adopt an existing object, e.g. onepassword_vault.team <uuid>"""
    try:
        reconciler = _build_reconciler(ctx.obj["state_path"])
        resource = asyncio.run(reconciler.import_resource(address, resource_id))
    except (ValueError, OperatorError) as e:
        _fail(e)

    click.echo(f"Imported {resource.address} (ID: {resource.id})")


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Destroy without confirmation")
@click.pass_context
def destroy(ctx, yes):
    """Delete every resource in state"""
    try:
        reconciler = _build_reconciler(ctx.obj["state_path"])
        entries = reconciler.plan_destroy()
    except ValueError as e:
        _fail(e)

    if not entries:
        click.echo("Nothing to destroy.")
        return

    _print_plan(entries)
    if not yes:
        click.confirm("Destroy all of these resources?", abort=True)

    results = asyncio.run(reconciler.apply(entries))
    _print_results(results)
    if not all(r.success for r in results):
        sys.exit(1)


@cli.group()
def state():
    """Inspect the local state file"""
    pass


@state.command(name="list")
@click.pass_context
def state_list(ctx):
    """List resources in state"""
    store = StateStore(ctx.obj["state_path"]).load()
    rows = [[r.address, r.kind, r.id or "(missing)"] for r in store]
    click.echo(tabulate(rows, headers=["Address", "Kind", "ID"], tablefmt="grid"))


@state.command(name="show")
@click.argument("address")
@click.option("--output", "-o", type=click.Choice(["json", "yaml"]), default="json")
@click.pass_context
def state_show(ctx, address, output):
    """Show one resource from state"""
    store = StateStore(ctx.obj["state_path"]).load()
    resource = store.get(address)
    if resource is None:
        _fail(f"{address} is not in state")

    payload = {"address": resource.address, **resource.to_dict()}
    if output == "yaml":
        click.echo(yaml.dump(payload, default_flow_style=False))
    else:
        click.echo(json.dumps(payload, indent=2))


@state.command(name="rm")
@click.argument("address")
@click.pass_context
def state_rm(ctx, address):
    """Forget a resource without touching the backend"""
    store = StateStore(ctx.obj["state_path"]).load()
    if address not in store:
        _fail(f"{address} is not in state")
    store.remove(address)
    store.save()
    click.echo(f"Removed {address} from state")


if __name__ == "__main__":
    cli()
