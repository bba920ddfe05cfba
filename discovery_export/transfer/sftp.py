"""
SFTP upload of export batches using paramiko.

The destination directory is chosen by batch kind alone. Failures are
logged and reported to the caller; nothing is retried.
"""

import posixpath
from pathlib import Path

import paramiko

from discovery_export.core.exceptions import TransferError
from discovery_export.core.models import BatchKind, TransferConfig
from discovery_export.observability.logger import TRANSFER_FAILURE, get_logger

logger = get_logger(__name__)


def remote_path(file_path: Path, kind: BatchKind, transfer: TransferConfig) -> str:
    """Remote location for a batch file: <remote_root>/<kind>/<file name>."""
    return posixpath.join(transfer.remote_root, kind.destination, Path(file_path).name)


class SftpUploader:
    """
    Uploads one file per call over a fresh SFTP session.

    Host keys are loaded from the system known_hosts file; unknown hosts are
    rejected unless `auto_add_host_keys` is set.
    """

    def __init__(self, connect_timeout: float = 30.0, auto_add_host_keys: bool = False):
        self.connect_timeout = connect_timeout
        self.auto_add_host_keys = auto_add_host_keys

    def _connect(self, transfer: TransferConfig) -> paramiko.SSHClient:
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        if self.auto_add_host_keys:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        client.connect(
            hostname=transfer.host,
            port=transfer.port,
            username=transfer.user,
            password=transfer.password,
            timeout=self.connect_timeout,
            allow_agent=False,
            look_for_keys=False,
        )
        return client

    def put(self, file_path: Path, kind: BatchKind, transfer: TransferConfig) -> str:
        """
        Transfer a file, confirming the remote size matches.

        Returns:
            The remote path written

        Raises:
            TransferError: On any SSH, SFTP or local I/O failure
        """
        target = remote_path(file_path, kind, transfer)
        try:
            client = self._connect(transfer)
            try:
                with client.open_sftp() as sftp:
                    sftp.put(str(file_path), target, confirm=True)
            finally:
                client.close()
        except (paramiko.SSHException, OSError) as e:
            raise TransferError(f"Upload of {file_path} to {transfer.host}:{target} failed: {e}") from e
        return target

    def upload(self, file_path: Path, kind: BatchKind, transfer: TransferConfig) -> bool:
        """
        Transfer a file and report success.

        Failures are logged with error_category=transfer_failure.
        """
        try:
            target = self.put(file_path, kind, transfer)
        except TransferError as e:
            logger.error(
                str(e),
                extra={
                    "error_category": TRANSFER_FAILURE,
                    "batch_kind": kind.value,
                    "file_path": str(file_path),
                    "host": transfer.host,
                },
            )
            return False

        logger.info(
            f"Uploaded {file_path} to {transfer.host}:{target}",
            extra={"batch_kind": kind.value, "file_path": str(file_path), "host": transfer.host},
        )
        return True
