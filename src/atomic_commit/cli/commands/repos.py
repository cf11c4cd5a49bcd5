"""atomic-commit repos -- list repositories you can push to."""

from __future__ import annotations

import click

from atomic_commit.cli.formatting import format_error, format_repositories, get_console


@click.command()
@click.option("--max-pages", default=10, type=click.IntRange(min=1), help="Pages of 100 to fetch.")
@click.pass_context
def repos(ctx: click.Context, max_pages: int) -> None:
    """List repositories the connected account can push to."""
    from atomic_commit.cli import _get_config, _get_credentials
    from atomic_commit.exceptions import AtomicCommitError
    from atomic_commit.remote.account import GitHubAccount
    from atomic_commit.remote.github import GitHubClient

    console = get_console()
    try:
        credential = _get_credentials(ctx).get_credential()
        with GitHubAccount(GitHubClient(credential, _get_config(ctx))) as account:
            found = account.list_repositories(max_pages=max_pages)
    except AtomicCommitError as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    format_repositories(found, console)
