"""Trigger a Dgraph export through the admin HTTP endpoint."""

import logging
from typing import Optional

import httpx

from dgraph_backup.exceptions import ExportFailedError, ExportUnreachableError
from dgraph_backup.models import ExportJob

logger = logging.getLogger(__name__)

SUCCESS_MARKER = "Success"


class ExportTrigger:
    """Issue a single export request and classify the response."""

    def __init__(self, host: str, export_format: str = 'json',
                 timeout: Optional[float] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        """
        Args:
            host: Dgraph alpha HTTP address, e.g. http://localhost:8080
            export_format: 'json' or 'rdf'
            timeout: Request timeout in seconds; None waits indefinitely
            transport: Optional httpx transport (used by tests)
        """
        self.host = host.rstrip('/')
        self.export_format = export_format
        self.timeout = timeout
        self.transport = transport

    @property
    def request_uri(self) -> str:
        return f"{self.host}/admin/export?format={self.export_format}"

    def request_export(self) -> bool:
        """Ask Dgraph to write an export.

        Returns:
            True when the server confirmed the export, False on a non-2xx status.

        Raises:
            ExportUnreachableError: The server could not be reached.
            ExportFailedError: 2xx response whose body lacks the success marker.
        """
        job = ExportJob(request_uri=self.request_uri, export_format=self.export_format)
        logger.info(f"Requesting export from {job.request_uri}")

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(job.request_uri)
        except httpx.HTTPError as e:
            logger.error(f"Cannot reach Dgraph server at {self.host}: {e}")
            raise ExportUnreachableError(f"Cannot reach Dgraph server at {self.host}: {e}") from e

        if not response.is_success:
            logger.error(f"Export request rejected with HTTP {response.status_code}")
            return False

        body = response.text
        if SUCCESS_MARKER not in body:
            logger.error(f"Export failed: {body}")
            raise ExportFailedError(f"Export failed: {body.strip()}", body=body)

        logger.info("✓ Data export successful")
        return True
