"""Typer CLI for Tenancy-Engine."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="tenancy", help="Tenancy-Engine: schema-per-tenant registry")
console = Console()


def _run(coro_factory):
    """Run ``coro_factory(registry)`` against a freshly initialized database."""
    from tenancy_engine.deps import get_db, get_tenant_registry

    async def runner():
        db = get_db()
        await db.init()
        try:
            return await coro_factory(get_tenant_registry())
        finally:
            await db.close()

    return asyncio.run(runner())


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(9000, help="Bind port"),
):
    """Start the Tenancy-Engine API server."""
    import uvicorn
    from tenancy_engine.app import create_app

    console.print(f"[bold green]Starting Tenancy-Engine on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def init():
    """Create the tenant registry table (idempotent)."""
    _run(lambda registry: registry.initialize())
    console.print("[bold green]Tenant registry initialized[/bold green]")


@app.command("schema-name")
def schema_name(
    entity_id: str = typer.Argument(..., help="External entity id (e.g., acme-1)"),
):
    """Derive a tenant's schema name (offline, no DB required)."""
    from tenancy_engine.common.exceptions import InvalidEntityIdError
    from tenancy_engine.tenants.naming import schema_name_for

    try:
        console.print(f"[bold]{schema_name_for(entity_id)}[/bold]")
    except InvalidEntityIdError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)


@app.command("list")
def list_tenants():
    """List provisioned tenants, newest first."""
    tenants = _run(lambda registry: registry.list())

    table = Table("Entity", "Name", "Schema", "Status", "Created")
    for t in tenants:
        table.add_row(t.entity_id, t.entity_name, t.schema_name, t.status, t.created_at.isoformat())
    console.print(table)


@app.command()
def reconcile(
    repair: bool = typer.Option(False, help="Re-provision orphaned and pending tenants"),
    drop_leaked: bool = typer.Option(False, help="Drop tenant schemas that have no registry row"),
):
    """Compare registry rows with existing tenant schemas."""
    report = _run(lambda registry: registry.reconcile(repair=repair, drop_leaked=drop_leaked))

    if report.clean:
        console.print("[bold green]CLEAN[/bold green] — registry and schemas agree")
    for label, items in (
        ("Orphaned rows", report.orphaned_rows),
        ("Leaked schemas", report.leaked_namespaces),
        ("Stale pending", report.stale_pending),
        ("Drifted rows", report.drifted_rows),
        ("Repaired", report.repaired),
        ("Dropped", report.dropped),
    ):
        if items:
            console.print(f"[bold yellow]{label}:[/bold yellow] {', '.join(items)}")
    if report.drifted_rows:
        raise typer.Exit(1)


@app.command()
def health(
    url: str = typer.Option("http://localhost:9000", help="Server URL"),
):
    """Check Tenancy-Engine server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] — v{data['version']}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
