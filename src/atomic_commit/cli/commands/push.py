"""atomic-commit push -- commit local files to a branch in one step."""

from __future__ import annotations

from pathlib import Path

import click

from atomic_commit.cli.formatting import format_error, format_hint, format_push_result, get_console


def _parse_file_arg(arg: str) -> tuple[Path, str]:
    """Split ``SRC[:DEST]`` into a local path and a repository path."""
    src, sep, dest = arg.partition(":")
    local = Path(src)
    return local, dest if sep else local.as_posix()


@click.command()
@click.argument("files", nargs=-1, required=True)
@click.option("--repo", "-r", required=True, envvar="ATOMIC_COMMIT_REPO", help="Target repository (owner/name).")
@click.option("--branch", "-b", default="main", show_default=True, help="Branch to update.")
@click.option("--message", "-m", required=True, help="Commit message.")
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Parallel blob uploads.")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None, help="Deadline for the whole push, in seconds.")
@click.pass_context
def push(
    ctx: click.Context,
    files: tuple[str, ...],
    repo: str,
    branch: str,
    message: str,
    workers: int | None,
    timeout: float | None,
) -> None:
    """Push FILES to a branch as a single commit.

    Each FILE is SRC or SRC:DEST, where DEST is the path inside the
    repository (defaults to SRC).
    """
    from atomic_commit.cli import _get_config, _get_credentials
    from atomic_commit.exceptions import AtomicCommitError, RefConflictError
    from atomic_commit.models.push import PushRequest
    from atomic_commit.orchestrator import PushOrchestrator
    from atomic_commit.remote.github import GitHubObjectStore

    console = get_console()
    config = _get_config(ctx)
    if workers is not None:
        config = config.model_copy(update={"max_workers": workers})

    contents: dict[str, str] = {}
    for arg in files:
        local, dest = _parse_file_arg(arg)
        try:
            contents[dest] = local.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            format_error(f"Cannot read {local}: {e}", console)
            raise SystemExit(1) from None

    try:
        orchestrator = PushOrchestrator(
            _get_credentials(ctx),
            GitHubObjectStore.factory(repo, config),
            config,
        )
        result = orchestrator.push(
            PushRequest(files=contents, target_ref=branch, message=message),
            timeout=timeout,
        )
    except RefConflictError as e:
        format_error(str(e), console)
        format_hint("Nothing was written. Pull the latest changes and push again.", console)
        raise SystemExit(2) from None
    except AtomicCommitError as e:
        format_error(str(e), console)
        format_hint("Nothing was written; the branch is unchanged.", console)
        raise SystemExit(1) from None

    format_push_result(result, console)
