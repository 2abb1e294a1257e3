"""
Command‑line interface for the implantpass QR codec.
Encodes procedures (JSON or Excel) into QR images and decodes scanned QR text
back into procedure JSON, reporting anything the lenient readers had to fix.
"""

import click
import json
import logging
import pathlib
import sys
import typing

from stairval.notepad import Notepad, create_notepad

from .dates import parse_wire_date
from .decoder import ParseFailure, ProcedureCollection, ProcedureDecoder
from .encoder import EmptyInputError, QrProcedureEncoder
from .loader import load_procedures_from_workbook
from .mapper import ProcedureMapper
from .procedure import Procedure
from .samples import sample_procedure


@click.group()
@click.option(
    "--verbose-logging",
    is_flag=True,
    help="Also emit debug logs to stderr",
)
@click.option(
    "--log-file-path",
    type=click.Path(dir_okay=False, writable=True),
    help="Append timestamped logs to this file",
)
def main(verbose_logging: bool = False, log_file_path: typing.Optional[str] = None):
    """implantpass: share surgical implant records through QR codes."""
    _configure_logging(verbose_logging, log_file_path)


def _configure_logging(verbose_logging: bool, log_file_path: typing.Optional[str]) -> None:
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=handlers,
        )


def _report_issues(notepad: Notepad, err: bool = False):
    # if there were errors, show them
    if notepad.has_errors(include_subsections=True):
        click.echo("Errors found in procedure data:", err=err)
        for issue in notepad.errors():
            click.echo(f"- {issue.message}", err=err)
    # show any warnings but keep going
    if notepad.has_warnings(include_subsections=True):
        click.echo("Warnings found in procedure data:", err=err)
        for w in notepad.warnings():
            click.echo(f"- {w.message}", err=err)


def _emit(encoder: QrProcedureEncoder, procedures: typing.Union[Procedure, list[Procedure]],
          output_path: typing.Optional[str], text_only: bool) -> None:
    """Print the payload text or write the QR image for one procedure or a list."""
    if not text_only and not output_path:
        click.echo("Error: --output-path is required unless --text is given", err=True)
        sys.exit(1)

    is_collection = isinstance(procedures, list)
    try:
        if text_only:
            payload = (encoder.collection_payload(procedures) if is_collection
                       else encoder.single_payload(procedures))
            click.echo(payload)
            return
        image = (encoder.encode_collection(procedures) if is_collection
                 else encoder.encode_single(procedures))
    except EmptyInputError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    image.save(output_path, format="PNG")
    count = len(procedures) if is_collection else 1
    click.echo(f"Wrote QR code for {count} procedure(s) to {output_path}")


_output_option = click.option(
    "-o",
    "--output-path",
    type=click.Path(dir_okay=False, writable=True),
    help="where to write the PNG image",
)
_text_option = click.option("--text", "text_only", is_flag=True, help="Print the QR payload instead of rendering it")


@main.command(name="encode")
@click.option(
    "-i",
    "--input-path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file with one procedure object or a list of procedures",
)
@_output_option
@_text_option
def encode(input_path: str, output_path: typing.Optional[str], text_only: bool):
    """
    Render procedures from a JSON file as a QR code.
    An object becomes a single-procedure code, a list a collection code.
    """
    try:
        data = json.loads(pathlib.Path(input_path).read_text(encoding="utf-8"))
    except ValueError as e:
        click.echo(f"Error: {input_path} is not valid JSON: {e}", err=True)
        sys.exit(1)

    notepad = create_notepad("procedures")
    mapper = ProcedureMapper()
    if isinstance(data, list):
        procedures = mapper.map_procedures(data, "procedures", notepad)
    else:
        procedures = mapper.map_procedure(data, "procedure", notepad)

    _report_issues(notepad)
    if notepad.has_errors(include_subsections=True) or procedures is None:
        sys.exit(1)

    _emit(QrProcedureEncoder(), procedures, output_path, text_only)


@main.command(name="encode-excel")
@click.option(
    "-e",
    "--excel-path",
    "excel_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="path to the Excel workbook (sheets 'procedures' and 'implants')",
)
@_output_option
@_text_option
def encode_excel(excel_file: str, output_path: typing.Optional[str], text_only: bool):
    """
    Read every procedure of a workbook and render them as one collection QR code.
    """
    notepad = create_notepad("workbook")
    procedures = load_procedures_from_workbook(excel_file, notepad)
    _report_issues(notepad)
    if notepad.has_errors(include_subsections=True):
        sys.exit(1)

    click.echo(f"Read {len(procedures)} procedures from {excel_file}")
    _emit(QrProcedureEncoder(), procedures, output_path, text_only)


@main.command(name="decode")
@click.option(
    "-i",
    "--input-path",
    "input_file",
    type=click.File("rb"),
    default="-",
    help="file holding the scanned QR text (default: stdin)",
)
@click.option("--iso-dates", is_flag=True, help="Write dates as YYYY-MM-DD instead of DD.MM.YYYY")
def decode(input_file: typing.BinaryIO, iso_dates: bool):
    """
    Decode scanned QR text and print the procedures as JSON.
    Exits with status 1 when the text is not a procedure QR code.
    """
    notepad = create_notepad("qr-payload")
    result = ProcedureDecoder().parse(input_file.read(), notepad)

    if isinstance(result, ParseFailure):
        click.echo(f"Error ({result.kind.name}): {result.message}", err=True)
        sys.exit(1)

    if isinstance(result, ProcedureCollection):
        records = [_procedure_json(procedure, iso_dates) for procedure in result.procedures]
        output: typing.Any = records
    else:
        output = _procedure_json(result.procedure, iso_dates)

    # issues go to stderr so stdout stays valid JSON
    _report_issues(notepad, err=True)
    click.echo(json.dumps(output, ensure_ascii=False, indent=2))


def _procedure_json(procedure: Procedure, iso_dates: bool) -> dict[str, typing.Any]:
    wire = procedure.to_wire()
    if iso_dates:
        wire["date"] = parse_wire_date(wire["date"])
        for implant in wire["implants"]:
            if "implantDate" in implant:
                implant["implantDate"] = parse_wire_date(implant["implantDate"])
    return wire


@main.command(name="sample")
@_output_option
@_text_option
def sample(output_path: typing.Optional[str], text_only: bool):
    """
    Render the demo hip replacement procedure, handy for testing a scanner.
    """
    _emit(QrProcedureEncoder(), sample_procedure(), output_path, text_only)


if __name__ == "__main__":
    main()
