"""Admin CLI for filedrop: users, forced cleanup and forced deletion."""

import asyncio
import sys

import click

from .config import settings
from .core.dependencies import AppServices, build_services
from .core.exceptions import FiledropError
from .db.database import Database


def run_async(coro):
    """Run an async function in a new event loop."""
    return asyncio.run(coro)


async def _with_services(ctx: click.Context, action):
    database = Database(ctx.obj["database_url"])
    try:
        await database.create_all()
        return await action(build_services(database, root_path=ctx.obj["root_path"]))
    finally:
        await database.dispose()


def _run(ctx: click.Context, action):
    try:
        return run_async(_with_services(ctx, action))
    except FiledropError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)


@click.group()
@click.option(
    "-d", "--database-url",
    envvar="DATABASE_URL",
    default=None,
    help="Database URL, defaults to the DATABASE_URL env variable.",
)
@click.option(
    "--root-path",
    envvar="ROOT_PATH",
    default=None,
    help="Directory holding the uploaded files, defaults to ROOT_PATH.",
)
@click.pass_context
def cli(ctx, database_url, root_path):
    """Manage the users, files and tokens of a filedrop instance."""
    ctx.ensure_object(dict)
    ctx.obj["database_url"] = database_url or settings.DATABASE_URL
    ctx.obj["root_path"] = root_path or settings.ROOT_PATH


@cli.command()
@click.pass_context
def cleanup(ctx):
    """Force a cleanup of expired files and tokens."""
    async def action(services: AppServices):
        return await services.cleanup.run_once()

    report = _run(ctx, action)
    click.echo(f"Deleted {report.tokens_deleted} tokens and {report.files_deleted} files.")


@cli.command("gen-user")
@click.option("-u", "--username", required=True)
@click.option("-p", "--password", required=True)
@click.pass_context
def gen_user(ctx, username, password):
    """Create a user with the given username/password."""
    async def action(services: AppServices):
        return await services.users.create_user(username, password)

    _run(ctx, action)
    click.echo(f"Created user {username}.")


@cli.command()
@click.option("-t", "--token", "token_path", required=True, help="Path of the token to delete.")
@click.pass_context
def delete(ctx, token_path):
    """Delete a token and its files, regardless of their expiration date."""
    async def action(services: AppServices):
        return await services.tokens.delete_token(token_path)

    report = _run(ctx, action)
    if report.tokens == 0:
        click.echo(f"No token found for {token_path}, removed its directory if any.")
    else:
        click.echo(f"Deleted token {token_path} and {report.files} files.")


if __name__ == "__main__":
    cli()
