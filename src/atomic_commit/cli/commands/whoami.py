"""atomic-commit whoami -- show the connected account."""

from __future__ import annotations

import click

from atomic_commit.cli.formatting import format_error, format_user, get_console


@click.command()
@click.pass_context
def whoami(ctx: click.Context) -> None:
    """Show which account the token belongs to."""
    from atomic_commit.cli import _get_config, _get_credentials
    from atomic_commit.exceptions import AtomicCommitError
    from atomic_commit.remote.account import GitHubAccount
    from atomic_commit.remote.github import GitHubClient

    console = get_console()
    try:
        credential = _get_credentials(ctx).get_credential()
        with GitHubAccount(GitHubClient(credential, _get_config(ctx))) as account:
            user = account.get_user()
    except AtomicCommitError as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    format_user(user, console)
