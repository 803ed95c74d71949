"""Command-line entry point: regenerate the marked sections of a document."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated
from uuid import uuid4

import typer

from tsdocsync.errors import DocSyncError
from tsdocsync.logging import CorrelationContext, get_logger, setup_logging, with_fields
from tsdocsync.problem_details import render_problem
from tsdocsync.settings import load_settings
from tsdocsync.splice import UpdateStatus, update_document

__all__ = ["app", "main"]

LOGGER = get_logger(__name__)

app = typer.Typer(
    help="Inject TypeScript API documentation generated from JSDoc into a markdown document.",
    add_completion=False,
)


def _fail(message: str) -> typer.Exit:
    typer.echo(message, err=True)
    return typer.Exit(code=1)


@app.command()
def main(
    file: Annotated[
        Path | None,
        typer.Option("--file", help="Document to update.", metavar="PATH", show_default="README.md"),
    ] = None,
    search: Annotated[
        str | None,
        typer.Option("--search", help="Phrase that marks generated sections.", metavar="PHRASE"),
    ] = None,
    repo_url: Annotated[
        str | None,
        typer.Option("--repo-url", help="Repository URL used to deep-link headings.", metavar="URL"),
    ] = None,
    branch: Annotated[
        str | None,
        typer.Option("--branch", help="Branch named in deep links.", metavar="NAME"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug details to stderr."),
    ] = False,
) -> None:
    """Regenerate every marked section of the document.

    Raises
    ------
    typer.Exit
        With code 1 when no markers are found or generation fails.
    """
    try:
        settings = load_settings()
    except DocSyncError as exc:
        raise _fail(f"Error: {exc.message}") from exc

    level = logging.DEBUG if verbose else logging.getLevelNamesMapping()[settings.log_level]
    setup_logging(level)

    path = file if file is not None else settings.readme_path
    phrase = search if search is not None else settings.search_phrase
    url = repo_url if repo_url is not None else settings.repo_url
    logger = with_fields(LOGGER, operation="update", document=path.as_posix())

    with CorrelationContext(uuid4().hex):
        try:
            result = update_document(
                path,
                phrase,
                url,
                branch=branch or settings.branch,
                progress=typer.echo,
            )
        except DocSyncError as exc:
            problem = render_problem(exc.to_problem_details())
            logger.log(exc.log_level, exc.message, extra={"problem_details": problem})
            raise _fail(f"Error: {exc.message}") from exc

    if result.status is UpdateStatus.NO_MARKERS:
        raise _fail(f'Could not find any "{phrase}" markers in {path}')
    typer.echo(f"Updated documentation for {result.count} file(s) in {path}")
