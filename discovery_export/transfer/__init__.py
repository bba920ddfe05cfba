"""
Outbound transfer of finished batch files.
"""

from .sftp import SftpUploader, remote_path

__all__ = ["SftpUploader", "remote_path"]
