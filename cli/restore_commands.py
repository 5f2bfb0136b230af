"""Restore and listing commands."""

import sys

import click
from tabulate import tabulate

from cli.utils import (
    config_options,
    load_command_config,
    handle_error
)
from dgraph_backup.exceptions import LoaderError
from dgraph_backup.models import format_size
from dgraph_backup.restore import RestorePipeline, choose, key_selector, latest_selector
from dgraph_backup.storage import RemoteStore


def backups_table(candidates) -> str:
    """Numbered grid of remote backups."""
    table_data = []
    for idx, obj in enumerate(candidates, 1):
        modified = obj.last_modified.strftime('%Y-%m-%d %H:%M:%S') if obj.last_modified else '-'
        table_data.append([idx, obj.key, format_size(obj.size_bytes), modified])

    headers = ['#', 'Key', 'Size', 'Last Modified']
    return tabulate(table_data, headers=headers, tablefmt='grid')


def prompt_selector(candidates):
    """Interactive selector: show the table and ask for a number or key.

    Returns None when the operator cancels.
    """
    click.echo("\n📋 Select backup to restore:\n")
    click.echo(backups_table(candidates))
    try:
        answer = click.prompt(
            "\nBackup number or key (empty to cancel)",
            default='',
            show_default=False
        )
    except click.Abort:
        return None

    if not answer.strip():
        return None
    return choose(candidates, answer)


def register_commands(cli):
    """Register restore commands with main CLI."""

    @cli.command('restore')
    @config_options
    @click.option('--key', '-k', help='Restore this object key without prompting')
    @click.option('--latest', is_flag=True, help='Restore the newest backup without prompting')
    @click.option('--no-load', is_flag=True, help='Download and extract only, skip the loader')
    @click.pass_context
    def restore(ctx, key, latest, no_load, **options):
        """Download a backup from S3, extract it and load it into Dgraph.

        Without --key or --latest an interactive list of the bucket's
        backups is shown. The selected archive is downloaded to the working
        directory, extracted into the restore directory (default ./data) and
        handed to the loader (default: dgraph live -f <path>).

        Examples:
            # Choose interactively
            dgraph-backup restore

            # Non-interactive
            dgraph-backup restore --key "dgraph-backup-2024-05-01T03:00:00+09:00.zip"
        """
        verbose = ctx.obj['verbose']

        if key and latest:
            handle_error(click.UsageError("--key and --latest are mutually exclusive"), verbose)

        if key:
            selector = key_selector(key)
        elif latest:
            selector = latest_selector
        else:
            selector = prompt_selector

        try:
            config = load_command_config(ctx, options)
            config.require_credentials()

            pipeline = RestorePipeline.from_config(config, selector, run_loader=not no_load)
            result = pipeline.run()
        except LoaderError as e:
            if e.output:
                click.echo(e.output, err=True)
            handle_error(e, verbose)
        except Exception as e:
            handle_error(e, verbose)

        if result.loader_output:
            click.echo(result.loader_output)
        click.echo(click.style(f"✅ Restored {result.key}", fg='green', bold=True))
        click.echo(f"   Data: {result.data_path}")

    @cli.command('list')
    @config_options
    @click.pass_context
    def list_backups(ctx, **options):
        """List backups stored in the S3 bucket, newest first."""
        verbose = ctx.obj['verbose']

        try:
            config = load_command_config(ctx, options)
            config.require_credentials()

            store = RemoteStore.from_config(config, show_progress=False)
            candidates = store.list_objects()
        except Exception as e:
            handle_error(e, verbose)

        if not candidates:
            click.echo(f"No backups found in s3://{config.storage.bucket}")
            sys.exit(0)

        click.echo(f"\n📋 Backups in s3://{config.storage.bucket}:\n")
        click.echo(backups_table(candidates))
        total = sum(obj.size_bytes for obj in candidates)
        click.echo(f"\nTotal: {len(candidates)} backup(s), {format_size(total)}\n")
