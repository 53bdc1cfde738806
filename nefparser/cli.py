"""CLI interface for nefparser -- info and scan subcommands."""

import json
import sys
from pathlib import Path

import click

import nefparser
from nefparser.extractor import collect_nef_files, parse_batch, parse_file
from nefparser.log import (
    cli_bold,
    cli_dim,
    cli_error,
    cli_header,
    cli_info,
    cli_separator,
    cli_success,
    cli_warning,
    configure_logging,
    log_error,
    log_info,
    log_warn,
    set_color_enabled,
)
from nefparser.nikon.lens_ids import LensTable
from nefparser.report import format_record, result_to_dict


@click.group()
@click.version_option(version=nefparser.__version__, prog_name='nefparser')
@click.option('--lens-ids', type=click.Path(exists=True, dir_okay=False),
              help='JSON file with extra lens IDs ({"lenses": [["E3 40 ...", "Name"]]}).')
@click.option('--debug', is_flag=True, help='Log every step of the decode to stderr.')
@click.option('--no-color', is_flag=True, help='Disable colored output.')
@click.pass_context
def main(ctx, lens_ids, debug, no_color):
    """nefparser -- Nikon NEF metadata decoder.

    Reads camera, exposure and lens metadata from Nikon raw files,
    including the encrypted lens data in the maker-note.
    """
    configure_logging(debug)
    if no_color:
        set_color_enabled(False)

    ctx.ensure_object(dict)
    try:
        ctx.obj['lens_table'] = (LensTable.from_json(lens_ids) if lens_ids
                                 else LensTable.default())
    except (OSError, ValueError) as e:
        raise click.BadParameter(str(e), param_hint='--lens-ids')


@main.command()
@click.argument('path', type=click.Path(exists=True))
@click.pass_context
def info(ctx, path):
    """Show the metadata of a single NEF file."""
    filepath = Path(path)

    if filepath.is_dir():
        click.echo('Error: info command requires a single file, not a directory.', err=True)
        sys.exit(1)

    result = parse_file(filepath, ctx.obj['lens_table'])

    click.echo(cli_header(f'File: {filepath.name}'))
    if result.file_size:
        click.echo(cli_dim(f'Size: {result.file_size / 1e6:.1f} MB'))

    if result.record is not None:
        for line in format_record(result.record):
            if line.startswith('Warning: '):
                click.echo(cli_warning(line))
            else:
                click.echo(line)

    if result.error:
        click.echo(cli_error(f'Error: {result.error}'), err=True)
        sys.exit(1)
    if result.is_partial:
        click.echo(cli_warning('\nPartial record: some sections could not be decoded.'))


@main.command()
@click.argument('path', type=click.Path(exists=True))
@click.option('--verbose', '-v', is_flag=True, help='Show decoded fields for every file.')
@click.option('--workers', '-w', type=int, default=1,
              help='Number of parallel workers (default: 1, sequential).')
@click.option('--json-out', type=click.Path(), help='Write results as JSON to file.')
@click.option('--log', type=click.Path(), help='Write log to file.')
@click.pass_context
def scan(ctx, path, verbose, workers, json_out, log):
    """Decode every NEF file under PATH (read-only).

    PATH can be a single file or a directory to scan recursively.
    """
    input_path = Path(path)
    files = collect_nef_files(input_path)
    if not files:
        click.echo(f'No NEF files found in {input_path}')
        return

    log_file = open(log, 'w') if log else None

    def log_line(line):
        if log_file:
            log_file.write(line + '\n')
            log_file.flush()

    workers_str = f', {workers} workers' if workers > 1 else ''
    click.echo(cli_header(f'nefparser v{nefparser.__version__}{workers_str}'))
    click.echo(f'Scanning {len(files)} file(s)...\n')
    log_line(log_info(f'Scanning {len(files)} file(s) in {input_path}'))

    def progress(i, total, filepath, result):
        prefix = f'  [{i}/{total}] {filepath.name}'
        if result.error:
            click.echo(f'{prefix} | {cli_error("ERROR")}: {result.error}')
            log_line(log_error(f'{filepath}: {result.error}'))
        elif result.is_partial:
            click.echo(f'{prefix} | {cli_warning("partial")}')
            for warning in result.record.warnings:
                log_line(log_warn(f'{filepath}: {warning}'))
        else:
            model = result.record.model or 'unknown camera'
            click.echo(f'{prefix} | {cli_success("ok")} {cli_dim(model)}')
            log_line(log_info(f'{filepath}: ok'))

        if verbose and result.record is not None:
            for line in format_record(result.record):
                click.echo(f'      {line}')

    batch = parse_batch(input_path, lens_table=ctx.obj['lens_table'],
                        progress_callback=progress, workers=workers)

    click.echo('\n' + cli_separator())
    click.echo(cli_bold(f'Done in {batch.total_time_seconds:.1f}s'))
    click.echo(f'  Total:   {batch.total_files}')
    click.echo(cli_success(f'  Parsed:  {batch.files_parsed}'))
    click.echo(cli_warning(f'  Partial: {batch.files_partial}'))
    click.echo(cli_error(f'  Errors:  {batch.files_errored}')
               if batch.files_errored else '  Errors:  0')

    if json_out:
        with open(json_out, 'w') as f:
            json.dump([result_to_dict(r) for r in batch.results], f, indent=2)
        click.echo(cli_info(f'\nResults written to {json_out}'))

    if log_file:
        log_file.close()

    if batch.files_errored > 0:
        sys.exit(1)


if __name__ == '__main__':
    main()
