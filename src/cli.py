#!/usr/bin/env python3
"""
CLI tool for the reconciliation engine.

Runs the sample reconcilers against an in-memory control plane and shows
the resulting observed state.
"""

import asyncio
import json
from typing import Any, Dict, List

import click
import yaml
from tabulate import tabulate

from config import configure_logging
from controller import Controller
from events import EventBus
from memory import InMemoryClient
from resources import Resource
from samples.simple import Simple, build_simple_reconciler

KINDS = {"Simple": Simple}


def load_documents(filename: str) -> List[Dict[str, Any]]:
    """Read resources from a YAML (multi-document) or JSON file."""
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            docs = [doc for doc in yaml.safe_load_all(f) if doc]
        else:
            data = json.load(f)
            docs = data if isinstance(data, list) else [data]
    return docs


def parse_resource(doc: Dict[str, Any]) -> Resource:
    kind = doc.get("kind", "Simple")
    if kind not in KINDS:
        raise click.BadParameter(f"Unsupported kind: {kind}. Supported: {', '.join(KINDS)}")
    body = {k: v for k, v in doc.items() if k != "kind"}
    return KINDS[kind].model_validate(body)


async def run_resources(
    resources: List[Resource], duration: float, delete: bool, watch: bool
) -> Dict[str, Any]:
    """
    Reconcile the resources until they settle or ``duration`` runs out.

    Returns:
        Mapping of resource key to the final resource, or None if deleted
    """
    client = InMemoryClient()
    event_bus = EventBus()
    controller = Controller(build_simple_reconciler(client), event_bus=event_bus)
    subscription = event_bus.subscribe(reconciler=controller.reconciler.name)

    async def print_events():
        async for event in subscription:
            click.echo(f"{event.key} {event.event_type.value}: {event.message}", err=True)

    watcher = asyncio.create_task(print_events()) if watch else None
    runner = asyncio.create_task(controller.start())
    try:
        for resource in resources:
            await client.create(resource)
            controller.enqueue(resource.key)
        await _settle(controller, duration)

        if delete:
            for resource in resources:
                if client.exists(resource.key):
                    await client.delete(resource.key)
                    controller.enqueue(resource.key)
            await _settle(controller, duration)
    finally:
        await controller.stop()
        await runner
        event_bus.unsubscribe(subscription)
        if watcher is not None:
            await watcher

    final = {}
    for resource in resources:
        key = resource.key
        final[str(key)] = await client.get(key) if client.exists(key) else None
    return final


async def _settle(controller: Controller, duration: float) -> None:
    try:
        await controller.wait_idle(timeout=duration)
    except asyncio.TimeoutError:
        click.echo(f"Not settled after {duration}s, showing current state", err=True)


def render(final: Dict[str, Any], output: str) -> str:
    if output == "json":
        return json.dumps(_as_data(final), indent=2)
    if output == "yaml":
        return yaml.dump(_as_data(final), default_flow_style=False)

    rows = []
    for key, instance in final.items():
        if instance is None:
            rows.append([key, "-", "Deleted", "", ""])
            continue
        conditions = instance.get_conditions() or []
        for condition in conditions:
            rows.append(
                [key, condition.type, condition.status.value, condition.reason, condition.message]
            )
    return tabulate(rows, headers=["RESOURCE", "CONDITION", "STATUS", "REASON", "MESSAGE"])


def _as_data(final: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: (instance.model_dump(mode="json") if instance is not None else None)
        for key, instance in final.items()
    }


@click.group()
def cli():
    """reconcilectl - run reconcilers against an in-memory control plane"""
    pass


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.option("--duration", type=float, default=5.0, help="Seconds to wait for resources to settle")
@click.option("--delete", is_flag=True, help="Delete the resources after they settled")
@click.option("--watch", is_flag=True, help="Print an event for every finished cycle")
@click.option(
    "--output", "-o", type=click.Choice(["table", "json", "yaml"]), default="table"
)
def run(filename, duration, delete, watch, output):
    """Reconcile resources from a YAML/JSON file"""
    configure_logging()
    resources = [parse_resource(doc) for doc in load_documents(filename)]
    final = asyncio.run(run_resources(resources, duration, delete, watch))
    click.echo(render(final, output))


if __name__ == "__main__":
    cli()
