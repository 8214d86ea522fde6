"""ERP Insights CLI tool (erpctl)."""

import asyncio
import json
from typing import Optional

import typer

app = typer.Typer(name="erpctl", help="ERP Insights CLI")
db_app = typer.Typer(help="Database management commands")
user_app = typer.Typer(help="User management commands")
app.add_typer(db_app, name="db")
app.add_typer(user_app, name="user")


@db_app.command("seed")
def db_seed():
    """Create tables and seed the admin user."""
    from erp_insights.db.session import SessionLocal, init_db
    from erp_insights.db.seeds.seed_admin import seed_admin

    init_db()
    db = SessionLocal()
    try:
        seed_admin(db)
    finally:
        db.close()
    typer.echo("✅ Database ready")


@user_app.command("add")
def user_add(
    email: str = typer.Argument(..., help="Login email"),
    full_name: str = typer.Option(..., prompt=True, help="Display name"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
    custom_role: Optional[str] = typer.Option(None, help="Role from the policy table"),
    admin: bool = typer.Option(False, "--admin", help="Give the built-in admin role"),
):
    """Create a user."""
    from erp_insights.core.exceptions import ResourceConflictError
    from erp_insights.core.security import get_policy_table
    from erp_insights.db.session import SessionLocal, init_db
    from erp_insights.services.auth_service import auth_service

    if custom_role and custom_role not in get_policy_table().assignable_roles():
        typer.echo(f"❌ Unknown role: {custom_role}", err=True)
        raise typer.Exit(code=1)

    init_db()
    db = SessionLocal()
    try:
        user = auth_service.create_user(
            db, email, password, full_name,
            role="admin" if admin else "user",
            custom_role=custom_role,
        )
    except ResourceConflictError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=1)
    finally:
        db.close()
    typer.echo(f"✅ Created user [{user.id}] {user.email}")


@app.command("modules")
def list_modules():
    """Print the SAP module registry."""
    from erp_insights.services.gateway_service import get_gateway_service

    for name, binding in get_gateway_service().registry.to_dict().items():
        typer.echo(f"  {name:<18} {binding['service']}/{binding['entitySet']}")


@app.command("roles")
def list_roles():
    """Print the role policy matrix."""
    from erp_insights.core.security import get_policy_table

    table = get_policy_table()
    for role, policy in table.matrix().items():
        marker = " (fallback)" if role == table.fallback_role else ""
        typer.echo(f"{role}{marker}")
        typer.echo(f"  modules: {', '.join(policy['modules'])}")
        for key, verbs in policy["actions"].items():
            typer.echo(f"  {key:<12} {', '.join(verbs) or '-'}")


@app.command("fetch")
def fetch_module(
    module: str = typer.Argument(..., help="SAP module name, e.g. SalesOrders"),
    top: Optional[int] = typer.Option(None, help="$top"),
    skip: Optional[int] = typer.Option(None, help="$skip"),
    filter: Optional[str] = typer.Option(None, "--filter", help="OData $filter expression"),
):
    """Fetch a SAP module with the environment credentials and print it as JSON."""
    from erp_insights.connectors.odata import ODataQuery
    from erp_insights.core.exceptions import ERPInsightsError
    from erp_insights.services.gateway_service import get_gateway_service

    gateway = get_gateway_service()
    try:
        result = asyncio.run(
            gateway.fetch_module(module, ODataQuery(filter=filter, top=top, skip=skip))
        )
    except ERPInsightsError as e:
        typer.echo(f"❌ {e.message}", err=True)
        if e.details:
            typer.echo(e.details, err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(result, indent=2, default=str))


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the FastAPI server."""
    import uvicorn
    uvicorn.run("erp_insights.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
