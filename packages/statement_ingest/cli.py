"""CLI for the ``statement_ingest`` package.

This module exposes callable command handlers (``cmd_import``,
``cmd_learn_rule``, ``cmd_show_mapping``) and a Typer-based console
interface. Environment variables (``OPENAI_API_KEY`` and the
``STATEMENT_INGEST_*`` settings) are loaded from a local ``.env`` using
``python-dotenv`` before delegating to command logic. Business logic lives in
``statement_ingest.api`` and related modules.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv

from .logging_setup import configure_logging


def _parse_file_owner(pair: str) -> tuple[Path, str]:
    """Split ``PATH:OWNER``; the owner is whatever follows the last colon."""

    path_part, sep, owner = pair.rpartition(":")
    if not sep or not path_part or not owner.strip():
        raise ValueError(f"expected FILE:OWNER, got {pair!r}")
    return Path(path_part), owner.strip()


def cmd_import(pairs: Sequence[str], *, output: Path | None = None, no_ai: bool = False) -> int:
    """Import ``FILE:OWNER`` pairs and print canonical JSON.

    Returns ``1`` when no file could be imported, ``0`` otherwise (partial
    failures are reported on stderr).
    """

    from .api import import_batch
    from .oracle import NullSchemaOracle
    from .pipeline import FileHints, ImportJob

    jobs: list[ImportJob] = []
    read_errors = 0
    for pair in pairs:
        try:
            path, owner = _parse_file_owner(pair)
            data = path.read_bytes()
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            read_errors += 1
            continue
        except OSError as e:
            print(f"Error: cannot read {pair!r}: {e.strerror or e}", file=sys.stderr)
            read_errors += 1
            continue
        jobs.append(ImportJob(data=data, owner=owner, hints=FileHints(filename=path.name)))

    result = import_batch(jobs, oracle=NullSchemaOracle() if no_ai else None)

    payload = json.dumps([tx.to_dict() for tx in result.transactions], indent=2)
    if output is not None:
        output.write_text(payload + "\n", encoding="utf-8")
    else:
        print(payload)

    for failure in result.failures:
        print(f"Error: {failure.filename or failure.owner}: {failure.error}", file=sys.stderr)
    print(
        f"Imported {len(result.transactions)} transactions "
        f"({result.transfer_count} transfer pairs)",
        file=sys.stderr,
    )

    if read_errors + len(result.failures) >= len(pairs):
        return 1
    return 0


def cmd_learn_rule(keyword: str, category: str) -> int:
    from .categorization import JsonFileCategoryRuleStore

    store = JsonFileCategoryRuleStore()
    try:
        store.learn(keyword, category)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Learned: {keyword.strip().lower()!r} -> {category.strip()!r}")
    return 0


def cmd_show_mapping(file_path: Path) -> int:
    """Print the header signature of ``file_path`` and the mapping it would use."""

    from .cache import JsonFileMappingCache, header_signature
    from .columns import rule_based_mapping
    from .grid import detect_header_row, read_grid, split_header

    try:
        grid = read_grid(file_path.read_bytes(), filename=file_path.name)
    except OSError as e:
        print(f"Error: cannot read {str(file_path)!r}: {e.strerror or e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    header_index = detect_header_row(grid)
    header, _rows = split_header(grid, header_index)
    mapping = JsonFileMappingCache().get(header)
    source = "cache"
    if mapping is None:
        mapping = rule_based_mapping(header)
        source = "rules"

    print(
        json.dumps(
            {
                "headerIndex": header_index,
                "signature": header_signature(header),
                "source": source,
                "mapping": mapping.to_json_dict(),
            },
            indent=2,
        )
    )
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    name="statement-ingest",
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank, wallet and ledger exports (CSV/XLSX) into canonical transactions. "
        "Loads OPENAI_API_KEY from a local .env before running."
    ),
)


@app.command("import")
def import_cmd(
    files: Annotated[list[str], typer.Argument(help="One or more FILE:OWNER pairs.")],
    *,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write JSON here instead of stdout.", dir_okay=False),
    ] = None,
    no_ai: Annotated[
        bool, typer.Option("--no-ai", help="Never consult the schema inference oracle.")
    ] = False,
) -> None:
    """Import statements and reconcile transfers between them."""

    raise typer.Exit(cmd_import(files, output=output, no_ai=no_ai))


@app.command("learn-rule")
def learn_rule_cmd(
    keyword: Annotated[str, typer.Argument(help="Description keyword (case-insensitive).")],
    category: Annotated[str, typer.Argument(help="Category to assign.")],
) -> None:
    """Teach a keyword -> category rule used on every later import."""

    raise typer.Exit(cmd_learn_rule(keyword, category))


@app.command("show-mapping")
def show_mapping_cmd(
    file_path: Annotated[Path, typer.Argument(help="Statement file to inspect.", dir_okay=False)],
) -> None:
    """Show the header signature and the mapping an import would start from."""

    raise typer.Exit(cmd_show_mapping(file_path))


@app.callback()
def _root() -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
