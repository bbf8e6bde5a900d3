"""CLI interface for kotorformats using Typer."""

from __future__ import annotations

import dataclasses
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from kotorformats import __version__
from kotorformats.core.constants import (
    BIF_TYPE,
    KEY_TYPE,
    TLK_TYPE,
    TWODA_TYPE,
    TWODA_VERSION,
    FieldType,
    Game,
)
from kotorformats.core.errors import ResourceNotFoundError

app = typer.Typer(
    name="kotorformats",
    help="Inspect and extract KotOR game resource files (GFF, ERF, KEY, BIF, TLK, 2DA).",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)

_quiet = False

# "****" is how the game's own tools show an empty 2DA cell
_EMPTY_CELL = "****"


class GameChoice(str, Enum):
    """User-facing game selection."""
    k1 = "k1"
    k2 = "k2"

    @property
    def game(self) -> Game:
        return Game.ONE if self == GameChoice.k1 else Game.TWO


def _print(msg: str) -> None:
    """Print unless --quiet. Errors go through _fail instead."""
    if not _quiet:
        console.print(msg)


def _fail(msg: str) -> typer.Exit:
    console.print(f"[red]Error:[/red] {msg}")
    return typer.Exit(1)


def _read_input(file: Path) -> bytes:
    if not file.is_file():
        raise _fail(f"File not found: {file}")
    return file.read_bytes()


def _detect_format(data: bytes) -> str:
    """Guess the format from the 8-byte file head."""
    from kotorformats.core.erf import ERF_TYPES, ERF_VERSION

    tp = data[:4].decode("latin-1")
    version = data[4:8].decode("latin-1")
    if tp in ERF_TYPES and version == ERF_VERSION:
        return "ERF"
    if tp == KEY_TYPE:
        return "KEY"
    if tp == BIF_TYPE:
        return "BIF"
    if tp == TLK_TYPE:
        return "TLK"
    if tp == TWODA_TYPE and version == TWODA_VERSION:
        return "2DA"
    if version.startswith("V3."):
        return "GFF"
    raise _fail(f"Unrecognized file type {tp!r} {version!r}")


def _describe(kind: str, data: bytes) -> list[tuple[str, str]]:
    from kotorformats.core.bif import read_bif_header
    from kotorformats.core.cursor import ByteReader
    from kotorformats.core.erf import parse_erf, read_erf_header
    from kotorformats.core.gff_parser import read_gff_header
    from kotorformats.core.key import parse_key
    from kotorformats.core.tlk import read_tlk_header
    from kotorformats.core.twoda import parse_twoda

    if kind == "GFF":
        h = read_gff_header(ByteReader(data))
        return [
            ("Structs", str(h.struct_count)),
            ("Fields", str(h.field_count)),
            ("Labels", str(h.label_count)),
            ("Field data", f"{h.field_data_bytes} bytes"),
        ]
    if kind == "ERF":
        h = read_erf_header(ByteReader(data))
        erf = parse_erf(data)
        return [
            ("Resources", str(len(erf.resources))),
            ("Localized strings", str(len(erf.loc_strings))),
            ("Built", f"{h.build_year + 1900}, day {h.build_day + 1}"),
        ]
    if kind == "KEY":
        key = parse_key(data)
        return [("BIF files", str(len(key.file_names))), ("Resources", str(len(key.resources)))]
    if kind == "BIF":
        h = read_bif_header(ByteReader(data))
        return [("Variable resources", str(h.variable_count)), ("Fixed resources", str(h.fixed_count))]
    if kind == "TLK":
        h = read_tlk_header(ByteReader(data))
        return [("Language", str(h.language)), ("Strings", str(h.string_count))]
    twoda = parse_twoda(data, {})
    return [("Rows", str(len(twoda))), ("Columns", ", ".join(twoda.columns))]


def _struct_to_json(s: Any) -> dict[str, Any]:
    return {
        "struct_id": s.type_id,
        "fields": {label: _field_to_json(f) for label, f in s.fields.items()},
    }


def _field_to_json(f: Any) -> dict[str, Any]:
    v = f.value
    if f.type == FieldType.STRUCT:
        value: Any = _struct_to_json(v)
    elif f.type == FieldType.LIST:
        value = [_struct_to_json(child) for child in v]
    elif f.type == FieldType.LOCSTRING:
        value = {"str_ref": v.str_ref, "strings": {str(s.id): s.content for s in v.strings}}
    elif f.type == FieldType.VOID:
        value = v.hex()
    elif f.type in (FieldType.ORIENTATION, FieldType.VECTOR):
        value = dataclasses.asdict(v)
    else:
        value = v
    return {"type": f.type_name, "value": value}


def version_callback(value: bool) -> None:
    if value:
        console.print(f"kotorformats {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Show debug logging from the decoders.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only show errors.",
    ),
) -> None:
    """kotorformats: Read and write KotOR resource files."""
    global _quiet
    _quiet = quiet

    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.command()
def info(
    file: Path = typer.Argument(..., help="Path to any supported resource file."),
) -> None:
    """Show the file type and a summary of its header."""
    data = _read_input(file)
    kind = _detect_format(data)

    try:
        rows = _describe(kind, data)
    except ValueError as e:
        raise _fail(str(e)) from e

    table = Table(title=f"{file.name}")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Format", kind)
    table.add_row("Type", data[:4].decode("latin-1").strip())
    table.add_row("Version", data[4:8].decode("latin-1"))
    for name, value in rows:
        table.add_row(name, value)
    console.print(table)


@app.command()
def gff(
    file: Path = typer.Argument(..., help="Path to a GFF file (.utc, .ifo, .git, ...)."),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write the JSON here instead of stdout.",
    ),
) -> None:
    """Dump a GFF struct tree as JSON."""
    from kotorformats.core.files import gff_from_bytes

    data = _read_input(file)
    try:
        parsed = gff_from_bytes(data)
    except ValueError as e:
        raise _fail(str(e)) from e

    tree = {
        "file_type": parsed.file_head.tp.strip(),
        "version": parsed.file_head.version,
        "root": _struct_to_json(parsed.root),
    }
    text = json.dumps(tree, indent=2, ensure_ascii=False)
    if output is not None:
        output.write_text(text, encoding="utf-8")
        _print(f"Saved: [cyan]{output}[/cyan]")
    else:
        typer.echo(text)


@app.command()
def erf(
    file: Path = typer.Argument(..., help="Path to an ERF/MOD/SAV/HAK archive."),
) -> None:
    """List the members of an ERF archive."""
    from kotorformats.core.files import erf_from_bytes

    data = _read_input(file)
    try:
        archive = erf_from_bytes(data)
    except ValueError as e:
        raise _fail(str(e)) from e

    table = Table(title=f"Resources in {file.name}")
    table.add_column("Id", justify="right", style="dim")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Size", justify="right")

    for key, res in sorted(archive.resources.items(), key=lambda item: item[1].id):
        table.add_row(str(res.id), key.name, key.type.extension, str(len(res.content)))

    console.print(table)


@app.command()
def extract(
    file: Path = typer.Argument(..., help="Path to an ERF/MOD/SAV/HAK archive."),
    name: str = typer.Argument(..., help="Member to extract, e.g. pc.utc."),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Output path (default: NAME in the current directory).",
    ),
) -> None:
    """Extract one member of an ERF archive."""
    from kotorformats.core.files import erf_from_bytes
    from kotorformats.core.resource import ResourceKey

    data = _read_input(file)
    try:
        key = ResourceKey.from_filename(name)
        archive = erf_from_bytes(data)
    except ValueError as e:
        raise _fail(str(e)) from e

    res = archive.get(key.name, key.type)
    if res is None:
        raise _fail(f"{name} is not in {file.name}")

    out = output if output is not None else Path(name)
    out.write_bytes(res.content)
    _print(f"Extracted [cyan]{name}[/cyan] ({len(res.content)} bytes) to [cyan]{out}[/cyan]")


@app.command()
def tlk(
    file: Path = typer.Argument(..., help="Path to a TLK file (dialog.tlk)."),
    refs: list[int] = typer.Argument(..., help="String refs to look up."),
) -> None:
    """Print strings from a talk table."""
    from kotorformats.core.tlk import parse_tlk

    data = _read_input(file)
    try:
        table_data = parse_tlk(data, refs)
    except ValueError as e:
        raise _fail(str(e)) from e

    table = Table(title=f"Strings in {file.name}")
    table.add_column("Ref", justify="right", style="dim")
    table.add_column("Text")
    for ref, text in zip(refs, table_data.strings):
        table.add_row(str(ref), text)
    console.print(table)


@app.command()
def twoda(
    file: Path = typer.Argument(..., help="Path to a binary 2DA file."),
    columns: list[str] = typer.Argument(..., help="Columns to show."),
    int_columns: list[str] = typer.Option(
        [], "--int", "-i", help="Parse this column as integers (repeatable).",
    ),
) -> None:
    """Print selected columns of a 2DA table."""
    from kotorformats.core.twoda import TwoDAType, parse_twoda

    data = _read_input(file)
    unknown = [c for c in int_columns if c not in columns]
    if unknown:
        raise _fail(f"--int names columns that weren't requested: {', '.join(unknown)}")

    wanted = {c: TwoDAType.INT if c in int_columns else TwoDAType.STRING for c in columns}
    try:
        parsed = parse_twoda(data, wanted)
    except ValueError as e:
        raise _fail(str(e)) from e

    table = Table(title=f"{file.name}")
    table.add_column("#", justify="right", style="dim")
    for c in wanted:
        table.add_column(c)
    for row in parsed.rows:
        cells = [_EMPTY_CELL if row[c] is None else str(row[c]) for c in wanted]
        table.add_row(str(row["_idx"]), *cells)
    console.print(table)


def _resolve_game_dir(
    game_dir: Path | None,
    game: GameChoice | None,
    steam_dir: Path | None,
) -> Path:
    if game_dir is not None:
        return game_dir
    if game is None or steam_dir is None:
        raise _fail("Pass GAME_DIR, or both --game and --steam-dir.")
    return steam_dir / "steamapps" / "common" / game.game.steam_dir


@app.command()
def find(
    name: str = typer.Argument(..., help="Resource to locate, e.g. appearance.2da."),
    game_dir: Path | None = typer.Argument(
        None, help="Game directory holding chitin.key.",
    ),
    overrides: list[Path] = typer.Option(
        [], "--override", help="Override directory, checked before the KEY (repeatable).",
    ),
    game: GameChoice | None = typer.Option(
        None, "--game", "-g", help="Find the game inside --steam-dir instead of GAME_DIR.",
    ),
    steam_dir: Path | None = typer.Option(
        None, "--steam-dir", help="Steam library root.",
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Also write the resource's bytes here.",
    ),
) -> None:
    """Locate a resource in override directories or the game's BIF archives."""
    from kotorformats.core.files import load_key
    from kotorformats.core.locator import FileSource, find_sources_by_name, read_resource
    from kotorformats.core.resource import ResourceKey

    root = _resolve_game_dir(game_dir, game, steam_dir)
    key_path = root / "chitin.key"
    if not key_path.is_file():
        raise _fail(f"File not found: {key_path}")

    try:
        res_key = ResourceKey.from_filename(name)
        key = load_key(key_path)
        source = find_sources_by_name(overrides, key, [res_key.name], res_key.type)[0]
    except (ValueError, ResourceNotFoundError) as e:
        raise _fail(str(e)) from e

    if isinstance(source, FileSource):
        console.print(f"{name}: override file [cyan]{source.path}[/cyan]")
    else:
        console.print(f"{name}: [cyan]{source.file}[/cyan] resource #{source.res_idx}")

    if output is not None:
        try:
            content = read_resource(root, source)
        except (ValueError, OSError) as e:
            raise _fail(str(e)) from e
        output.write_bytes(content)
        _print(f"Saved: [cyan]{output}[/cyan] ({len(content)} bytes)")
