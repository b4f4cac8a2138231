import asyncio
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from rich import print
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError
import typer

from billing.apps.subscription.schemas import SubscriptionResponse
from billing.core.config import settings
from billing.core.db import AsyncSessionLocal, dispose_db, init_db
from billing.core.db.crud import plan_db, subscription_db
from billing.core.enums import BillingInterval

app = typer.Typer()


async def init_db_task() -> None:
    """
    Create every table registered on the declarative base.

    Safe to run repeatedly: existing tables are left untouched.

    Raises:
        typer.Exit: If the database cannot be reached.
    """
    print(f"[yellow]Creating tables on[/yellow] {settings.DATABASE_URL}")
    try:
        await init_db()
    except SQLAlchemyError as e:
        print(f"[red]Error creating tables:[/red] {str(e)}")
        raise typer.Exit(1)
    finally:
        await dispose_db()
    print("[green]Tables created[/green]")


async def seed_free_plan_task(plan_id: str) -> None:
    """
    Insert the free plan if it is missing.

    Args:
        plan_id: ID of the free plan.
    """
    async with AsyncSessionLocal() as session:
        if existing := await plan_db.get_by_id(session, plan_id):
            print(f"[cyan]Free plan already exists:[/cyan] {existing.id}")
            return

        plan = await plan_db.create(
            session,
            {
                "id": plan_id,
                "name": plan_id,
                "display_name": "Free",
                "amount": Decimal("0.00"),
                "currency": "USD",
                "interval": BillingInterval.MONTH,
                "provider_price_ref": None,
                "is_active": True,
            },
        )
        print(f"[green]Free plan created:[/green] {plan.id}")


async def list_plans_task() -> None:
    """Print the active plan catalog ordered by price."""
    async with AsyncSessionLocal() as session:
        plans = await plan_db.get_active_plans(session)

    if not plans:
        print("[yellow]No active plans found[/yellow]")
        return

    table = Table(title="Active plans")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Amount", justify="right")
    table.add_column("Interval")
    table.add_column("Provider price")
    for plan in plans:
        table.add_row(
            plan.id,
            plan.display_name,
            f"{plan.amount} {plan.currency}",
            plan.interval.value,
            plan.provider_price_ref or "-",
        )
    print(table)


async def show_subscription_task(account_id: UUID) -> None:
    """
    Print the subscription record of an account as JSON.

    Args:
        account_id: Account ID.

    Raises:
        typer.Exit: If the account has no subscription record.
    """
    async with AsyncSessionLocal() as session:
        record = await subscription_db.get_by_account(session, account_id)

    if record is None:
        print(f"[red]No subscription found for account[/red] {account_id}")
        raise typer.Exit(1)

    print(SubscriptionResponse.model_validate(record).model_dump_json(indent=2))


@app.command("init-db")
def initdb():
    """
    Create the database tables.

    Examples:
        python manage.py init-db
    """
    asyncio.run(init_db_task())


@app.command("seed-free-plan")
def seedfreeplan(
    plan_id: Annotated[
        str,
        typer.Option("--plan-id", help="ID of the free plan to seed"),
    ] = settings.SUBSCRIPTION_FREE_PLAN_ID,
):
    """
    Insert the free plan if it is missing.

    Examples:
        python manage.py seed-free-plan
        python manage.py seed-free-plan --plan-id starter_free
    """
    asyncio.run(seed_free_plan_task(plan_id))


@app.command("list-plans")
def listplans():
    """Show the active plans."""
    asyncio.run(list_plans_task())


@app.command("show-subscription")
def showsubscription(
    account_id: Annotated[UUID, typer.Argument(help="Account ID")],
):
    """
    Show the subscription record of an account.

    Examples:
        python manage.py show-subscription 550e8400-e29b-41d4-a716-446655440001
    """
    asyncio.run(show_subscription_task(account_id))


@app.callback()
def main(ctx: typer.Context):
    print(f"Executing the command: {ctx.invoked_subcommand}")


if __name__ == "__main__":
    app()
