"""CLI entry point for cascade-release."""

from __future__ import annotations

import json
from pathlib import Path

import click
from pydantic import ValidationError

from .cargo_workspace import CargoWorkspace
from .config import CONFIG_FILE, load_config
from .errors import CascadeError, ParseError
from .logging import configure_logging
from .merge import merge_candidates
from .mirror import MirrorSync
from .models import Candidate
from .repository import LocalRepository
from .shell import fatal, step
from .workspace import WorkspaceReleaser
from .writer import write_candidates


def plan_options(f):
    """Options shared by ``plan`` and ``apply``."""
    f = click.option("--verbose", "-v", is_flag=True, help="Log debug events.")(f)
    f = click.option(
        "--config",
        "config_file",
        type=click.Path(dir_okay=False),
        default=None,
        help=f"Config file. [default: ROOT/{CONFIG_FILE}]",
    )(f)
    f = click.option(
        "--ref", default=None, help="Git ref to read files at (default: working tree)."
    )(f)
    f = click.option(
        "--root",
        type=click.Path(file_okay=False, exists=True),
        default=".",
        show_default=True,
        help="Repository checkout.",
    )(f)
    f = click.argument("candidates_file", type=click.File("r"))(f)
    return f


def load_candidates(candidates_file) -> list[Candidate]:
    """Read the candidates JSON: a list of {path, version, release_type}."""
    try:
        data = json.load(candidates_file)
    except json.JSONDecodeError as e:
        fatal(f"Invalid candidates JSON: {e}")
    if not isinstance(data, list):
        fatal("Candidates JSON must be a list of objects.")
    try:
        return [Candidate.model_validate(item) for item in data]
    except ValidationError as e:
        fatal(f"Invalid candidate: {e}")


def plan_release(
    candidates_file, root: str, ref: str | None, config_file: str | None, verbose: bool
) -> tuple[list[Candidate], LocalRepository]:
    configure_logging(verbose)
    candidates = load_candidates(candidates_file)
    repo_root = Path(root)
    repository = LocalRepository(repo_root)

    try:
        config_path = Path(config_file) if config_file else repo_root / CONFIG_FILE
        config = load_config(config_path)
        releaser = WorkspaceReleaser(
            CargoWorkspace(repository, ref=ref),
            merge=merge_candidates if config.merge else None,
            mirror=(
                MirrorSync(repository, config.mirror, ref=ref) if config.mirror else None
            ),
            manifest_path=config.manifest_path,
        )
        return releaser.run(candidates), repository
    except (CascadeError, ParseError, FileNotFoundError) as e:
        fatal(str(e))


def show_candidates(candidates: list[Candidate]) -> None:
    step(f"{len(candidates)} release candidate(s)")
    for candidate in candidates:
        line = f"{candidate.path} → {candidate.version} ({candidate.release_type})"
        click.echo(line)
        for update in candidate.updates:
            suffix = " (create)" if update.create_if_missing else ""
            click.echo(f"  {update.path}{suffix}")


@click.group()
@click.version_option(package_name="cascade-release")
def cli() -> None:
    """Propagate Cargo workspace releases through the dependency graph."""


@cli.command()
@plan_options
def plan(
    candidates_file, root: str, ref: str | None, config_file: str | None, verbose: bool
) -> None:
    """Show the releases and file edits for CANDIDATES_FILE."""
    candidates, _ = plan_release(candidates_file, root, ref, config_file, verbose)
    show_candidates(candidates)


@cli.command()
@plan_options
def apply(
    candidates_file, root: str, ref: str | None, config_file: str | None, verbose: bool
) -> None:
    """Plan the releases for CANDIDATES_FILE and write them to ROOT.

    With --ref, files are read at REF and the results written to ROOT.
    """
    candidates, repository = plan_release(
        candidates_file, root, ref, config_file, verbose
    )
    show_candidates(candidates)

    step("Writing files")
    try:
        touched = write_candidates(Path(root), candidates, repository, ref=ref)
    except (CascadeError, ParseError) as e:
        fatal(str(e))
    click.echo(f"✓ Updated {len(touched)} file(s)")
