import subprocess
import logging
from importlib import metadata

logger = logging.getLogger(__name__)

DIST_NAME = 'dgraph-backup'


def get_version():
    """Get version from installed metadata, else from git tags."""
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        pass

    try:
        # Latest tag plus commit distance, e.g. v1.2.0-3-gabc1234-dirty
        return subprocess.check_output(
            ['git', 'describe', '--tags', '--dirty'],
            stderr=subprocess.DEVNULL,
            text=True
        ).strip()
    except (subprocess.CalledProcessError, FileNotFoundError):
        logger.warning("Could not determine version from git, using fallback")
        return "0.0.0"


__version__ = get_version()
