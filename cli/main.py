"""Main CLI entry point - Root command group with global options."""

import click

from version import __version__


@click.group()
@click.option('--config', '-c', default=None, envvar='DGRAPH_BACKUP_CONFIG',
              help='Optional JSON configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging on console')
@click.version_option(version=__version__, prog_name='dgraph-backup')
@click.pass_context
def cli(ctx, config, verbose):
    """dgraph-backup - Dgraph export backup and restore via S3.

    Every option can also be given through its environment variable
    (see each command's --help). Values resolve in this order:
    command-line flag, environment variable, configuration file, default.

    Examples:
        # One backup right now
        dgraph-backup backup-now --aws-key KEY --aws-secret SECRET

        # Back up every 30 minutes
        dgraph-backup backup-cron --cron-every-minute 30

        # Back up daily at 03:00
        dgraph-backup backup-cron --at 03:00

        # Pick a snapshot and load it with dgraph live
        dgraph-backup restore
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose


def register_all_commands():
    """Register all command modules with the main CLI."""
    from cli import (
        backup_commands,
        restore_commands,
        config_commands,
    )

    backup_commands.register_commands(cli)
    restore_commands.register_commands(cli)
    config_commands.register_commands(cli)


# Register all commands when module is imported
register_all_commands()
