"""CLI for managing Service Bus namespaces."""

import asyncio
from typing import Optional

import click

from busmgmt import BusManagement
from busmgmt.exceptions import RemoteError


@click.group()
@click.option("--profile", help="Configuration profile to use.")
@click.pass_context
def cli(ctx: click.Context, profile: Optional[str]):
    """Manages Service Bus namespaces."""
    ctx.obj = {"profile": profile}


async def _create(profile: Optional[str], name: str, region: str, wait: bool):
    async with BusManagement(profile=profile) as db:
        created = await db.namespaces.create(name, region)
        if wait:
            return await db.activation_poller().wait(name, current=created)
        return created


@cli.command()
@click.argument("name")
@click.option("--region", required=True)
@click.option("--wait", is_flag=True, help="Wait until the namespace is active.")
@click.pass_obj
def namespace(obj: dict, name: str, region: str, wait: bool):
    """Creates a namespace."""
    try:
        created = asyncio.run(_create(obj["profile"], name, region, wait))
    except RemoteError as e:
        if e.status_code == 409:
            print(f"Failed to create {name} namespace, already exists")
            return
        raise e
    print(f"{created.name}\t{created.region}\t{created.status.value}")


async def _delete(profile: Optional[str], name: str):
    async with BusManagement(profile=profile) as db:
        await db.namespaces.delete(name)


@cli.command()
@click.argument("name")
@click.pass_obj
def delete(obj: dict, name: str):
    """Deletes a namespace."""
    asyncio.run(_delete(obj["profile"], name))
    print(f"Deleted {name}")


async def _verify(profile: Optional[str], name: str) -> bool:
    async with BusManagement(profile=profile) as db:
        return await db.namespaces.verify(name)


@cli.command()
@click.argument("name")
@click.pass_obj
def verify(obj: dict, name: str):
    """Checks whether a namespace name is available."""
    available = asyncio.run(_verify(obj["profile"], name))
    print(f"{name} is {'available' if available else 'taken'}")


async def _list(profile: Optional[str]):
    async with BusManagement(profile=profile) as db:
        return await db.namespaces.all()


@cli.command(name="list")
@click.pass_obj
def list_namespaces(obj: dict):
    """Lists namespaces."""
    for ns in asyncio.run(_list(obj["profile"])):
        print(f"{ns.name}\t{ns.region}\t{ns.status.value}")


async def _regions(profile: Optional[str]):
    async with BusManagement(profile=profile) as db:
        return await db.regions.all()


@cli.command()
@click.pass_obj
def regions(obj: dict):
    """Lists the regions namespaces can be created in."""
    for region in asyncio.run(_regions(obj["profile"])):
        print(f"{region.code}\t{region.full_name}")


if __name__ == "__main__":
    cli()  # pragma: no cover
