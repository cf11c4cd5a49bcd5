"""atomic-commit CLI -- push local files to a repository as one commit.

This module is NEVER imported from atomic_commit/__init__.py.
It is only loaded via the ``atomic-commit`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

import logging

try:
    import click
except ImportError:
    raise ImportError(
        "CLI dependencies not installed. Install with: pip install atomic-commit[cli]"
    ) from None

from pydantic import ValidationError

from atomic_commit.auth.credentials import (
    CredentialAccessor,
    EnvSessionProvider,
    StaticSessionProvider,
)
from atomic_commit.models.config import PushConfig


@click.group()
@click.option(
    "--token",
    default=None,
    envvar="ATOMIC_COMMIT_TOKEN",
    help="API token (falls back to GITHUB_TOKEN).",
)
@click.option(
    "--api-url",
    default=None,
    envvar="ATOMIC_COMMIT_API_BASE_URL",
    help="API base URL (for GitHub Enterprise).",
)
@click.option("-v", "--verbose", is_flag=True, help="Log progress to stderr.")
@click.pass_context
def cli(ctx: click.Context, token: str | None, api_url: str | None, verbose: bool) -> None:
    """atomic-commit: publish many files as one commit, or not at all."""
    if verbose:
        from rich.logging import RichHandler

        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(show_path=False)],
        )
    ctx.ensure_object(dict)
    overrides = {"api_base_url": api_url} if api_url else {}
    try:
        ctx.obj["config"] = PushConfig.from_env(**overrides)
    except ValidationError as e:
        from atomic_commit.cli.formatting import format_error, get_console

        format_error(f"Invalid configuration: {e}", get_console())
        raise SystemExit(1) from None
    ctx.obj["token"] = token


def _get_credentials(ctx: click.Context) -> CredentialAccessor:
    """Build a credential accessor from --token or the environment."""
    token = ctx.obj.get("token")
    provider = StaticSessionProvider(token) if token else EnvSessionProvider()
    return CredentialAccessor(provider)


def _get_config(ctx: click.Context) -> PushConfig:
    return ctx.obj["config"]


# Register subcommands after cli group is defined
from atomic_commit.cli.commands.push import push  # noqa: E402
from atomic_commit.cli.commands.repos import repos  # noqa: E402
from atomic_commit.cli.commands.whoami import whoami  # noqa: E402

cli.add_command(push)
cli.add_command(repos)
cli.add_command(whoami)
