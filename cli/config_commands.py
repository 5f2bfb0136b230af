"""Configuration management commands."""

from pathlib import Path

import click

from config import create_default_config
from cli.utils import handle_error


def register_commands(cli):
    """Register config commands with main CLI."""

    @cli.command('init-config')
    @click.argument('path', required=False)
    @click.option('--force', is_flag=True, help='Overwrite without asking')
    @click.pass_context
    def init_config(ctx, path, force):
        """Create a default configuration file.

        PATH defaults to the global --config value, or dgraph-backup.json.

        Examples:
            dgraph-backup init-config

            dgraph-backup init-config /etc/dgraph-backup.json
        """
        config_path = path or ctx.obj.get('config_path') or 'dgraph-backup.json'

        if Path(config_path).exists() and not force:
            click.echo(f"Configuration file already exists: {config_path}")
            if not click.confirm("Overwrite existing configuration?"):
                return

        try:
            create_default_config(config_path)
        except OSError as e:
            handle_error(e, ctx.obj.get('verbose', False))

        click.echo(f"✓ Created configuration file: {config_path}")
        click.echo("\nNext steps:")
        click.echo("  1. Set dgraph.host and dgraph.export_path for your Dgraph alpha")
        click.echo("  2. Set storage.bucket and storage.region")
        click.echo("  3. Provide credentials via AWS_ACCESS_KEY / AWS_ACCESS_SECRET")
        click.echo(f"  4. Run: dgraph-backup --config {config_path} backup-now")
