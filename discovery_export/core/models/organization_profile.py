"""
OrganizationProfile model describing one publishing tenant.
"""

from pathlib import Path

from pydantic import BaseModel, Field


class TransferConfig(BaseModel):
    """
    Remote transfer credentials for an organization.

    Attributes:
        host: SFTP host name
        port: SFTP port
        user: Login user
        password: Login password
        remote_root: Directory under which the full/updates/deletes
            destination directories live ("" means the login directory)
    """

    host: str = Field(..., min_length=1)
    port: int = Field(default=22, gt=0, lt=65536)
    user: str = Field(..., min_length=1)
    password: str
    remote_root: str = ""

    class Config:
        frozen = True


class OrganizationProfile(BaseModel):
    """
    A publishing tenant. Loaded once per run and never mutated.

    Attributes:
        name: Unique organization name (used for --org selection)
        orgs: Holding org unit identifiers whose copies count toward the export
        source_id: Identifier used in file names and destination routing
        agency_code: Catalog agency code written to 852 $a
        output_dir: Local directory for export files
        transfer: Remote transfer credentials
    """

    name: str = Field(..., min_length=1)
    orgs: tuple[int, ...] = Field(..., min_length=1)
    source_id: str = Field(..., min_length=1, pattern=r"^[A-Za-z0-9_.-]+$")
    agency_code: str = Field(..., min_length=1)
    output_dir: Path = Field(default_factory=lambda: Path("."))
    transfer: TransferConfig

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "name": "Example Library",
                "orgs": [4, 5, 6],
                "source_id": "example",
                "agency_code": "EXL",
                "output_dir": "/var/spool/exports",
                "transfer": {
                    "host": "sftp.example.org",
                    "user": "exl",
                    "password": "secret",
                    "remote_root": "/incoming",
                },
            }
        }
