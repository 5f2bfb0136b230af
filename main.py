#!/usr/bin/env python3
"""dgraph-backup - Dgraph export backup and restore via S3.

Examples:
    # Get help
    python -m main --help
    python -m main backup-now --help

    # Backup workflow
    python -m main backup-now               # One backup now
    python -m main backup-cron              # Every CRON_EVERY_MINUTE minutes
    python -m main backup-cron --at 03:00   # Daily

    # Restore workflow
    python -m main list                     # Show stored backups
    python -m main restore                  # Choose one and load it
"""

from cli.main import cli

if __name__ == '__main__':
    cli()
