"""Backup commands: one-shot and scheduled."""

import signal
import sys
import threading

import click

from cli.utils import (
    config_options,
    load_command_config,
    handle_error,
    format_time
)
from dgraph_backup.backup import BackupPipeline
from dgraph_backup.models import format_size
from dgraph_backup.scheduler import BackupScheduler


def print_backup_result(result):
    """Final success/failure indication for one run."""
    if result.success:
        click.echo(click.style("✅ SUCCESS", fg='green', bold=True))
        click.echo(f"   Key: {result.archive_key}")
        click.echo(f"   Location: {result.location}")
        click.echo(f"   Size: {format_size(result.archive_size)}")
        click.echo(f"   Time: {format_time(result.duration_seconds)}")
    else:
        click.echo(click.style(f"❌ Backup failed at {result.stage}: {result.error}", fg='red'),
                   err=True)


def register_commands(cli):
    """Register backup commands with main CLI."""

    @cli.command('backup-now')
    @config_options
    @click.pass_context
    def backup_now(ctx, **options):
        """Export Dgraph, zip the export and upload it to S3 once.

        The bucket is checked before the export is requested. Exits non-zero
        when the bucket is not accessible, the export is rejected or never
        appears, the export cannot be archived, or the upload fails. The
        local archive and export directory are removed in every case once
        the export was ready.

        Examples:
            dgraph-backup backup-now --dgraph-host http://alpha:8080

            AWS_ACCESS_KEY=... AWS_ACCESS_SECRET=... dgraph-backup backup-now
        """
        verbose = ctx.obj['verbose']

        try:
            config = load_command_config(ctx, options)
            config.require_credentials()

            pipeline = BackupPipeline.from_config(config)
            pipeline.store.verify_bucket_access()
            result = pipeline.run()
        except Exception as e:
            handle_error(e, verbose)

        print_backup_result(result)
        if not result.success:
            sys.exit(1)

    @cli.command('backup-cron')
    @config_options
    @click.option('--at', 'at_time', help='Run daily at HH:MM (local time) instead of every N minutes')
    @click.option('--run-now', is_flag=True, help='Also run one backup immediately at start-up')
    @click.pass_context
    def backup_cron(ctx, at_time, run_now, **options):
        """Run backups on a schedule until stopped.

        Runs never overlap: a tick that arrives while the previous backup is
        still in progress is skipped. A fatal error (export failed, export
        never appeared, archive failure) stops the schedule with exit code 1.

        Examples:
            # Every 30 minutes
            dgraph-backup backup-cron --cron-every-minute 30

            # Daily at 03:00
            dgraph-backup backup-cron --at 03:00
        """
        verbose = ctx.obj['verbose']

        try:
            config = load_command_config(ctx, options, {'schedule': {'at': at_time}})
            config.require_credentials()
        except Exception as e:
            handle_error(e, verbose)

        stop_event = threading.Event()
        try:
            pipeline = BackupPipeline.from_config(config, stop_event=stop_event)
            pipeline.store.verify_bucket_access()
        except Exception as e:
            handle_error(e, verbose)

        scheduler = BackupScheduler(
            pipeline.run,
            every_minutes=config.schedule.every_minutes,
            at=config.schedule.at,
            run_immediately=run_now,
            stop_event=stop_event
        )

        signal.signal(signal.SIGTERM, lambda signum, frame: scheduler.stop())

        click.echo(f"⏰ Backing up {config.dgraph.host} to s3://{config.storage.bucket} "
                   f"{scheduler.describe()} (Ctrl-C to stop)")
        try:
            scheduler.run_forever()
        except KeyboardInterrupt:
            click.echo("\nSchedule stopped.")
        except Exception as e:
            handle_error(e, verbose)
        else:
            click.echo("Schedule stopped.")
        finally:
            click.echo(f"Runs started: {scheduler.runs_started}, skipped: {scheduler.runs_skipped}")
