"""
Pytest configuration and fixtures for discovery-export tests

This module provides shared fixtures for unit and integration tests.
"""
import logging
import os
from pathlib import Path
from typing import Callable, Generator

import psycopg
import pytest
from pymarc import Field, Record, Subfield, record_to_xml
from pymarc.leader import Leader
from testcontainers.postgres import PostgresContainer

from discovery_export.catalog.connection import DatabaseConnectionPool
from discovery_export.core.models import OrganizationProfile, TransferConfig
from discovery_export.observability.logger import DEFAULT_LOGGER_NAME


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )


# =======================
# FAKES
# =======================

class FakePool:
    """
    Stand-in for DatabaseConnectionPool.

    `responses` maps SQL text to either a row list or a callable taking the
    bound parameters and returning rows. Unknown SQL returns no rows.
    """

    def __init__(self, responses: dict | None = None, error: Exception | None = None):
        self.responses = responses or {}
        self.error = error
        self.calls: list[tuple[str, dict | None]] = []

    def execute_query(self, query: str, params: dict | None = None) -> list[dict]:
        self.calls.append((query, params))
        if self.error is not None:
            raise self.error
        response = self.responses.get(query, [])
        return response(params) if callable(response) else response

    def queries_run(self) -> list[str]:
        return [query for query, _ in self.calls]


@pytest.fixture
def fake_pool_factory() -> Callable[..., FakePool]:
    """Build FakePool instances"""
    return FakePool


# =======================
# MARC FIXTURES
# =======================

def build_record(record_id: int, title: str = "A title", status: str = "n", old_holdings: int = 1) -> Record:
    """Build a small bibliographic record with optional stale 852 fields"""
    record = Record()
    record.leader = Leader(f"00000{status}am a2200000 a 4500")
    record.add_ordered_field(Field(tag="001", data=str(record_id)))
    record.add_ordered_field(Field(tag="008", data="230101s2023    xxu           000 0 eng d"))
    record.add_ordered_field(Field(
        tag="245",
        indicators=["1", "0"],
        subfields=[Subfield(code="a", value=title)],
    ))
    record.add_ordered_field(Field(
        tag="650",
        indicators=[" ", "0"],
        subfields=[Subfield(code="a", value="Cataloging.")],
    ))
    for i in range(old_holdings):
        record.add_ordered_field(Field(
            tag="852",
            indicators=["4", " "],
            subfields=[Subfield(code="a", value="OLD"), Subfield(code="b", value=f"Stale {i}")],
        ))
    return record


def record_xml(record: Record) -> str:
    return record_to_xml(record, namespace=True).decode("utf-8")


@pytest.fixture
def marc_record_factory() -> Callable[..., Record]:
    """Build pymarc records for tests"""
    return build_record


@pytest.fixture
def marcxml_factory() -> Callable[..., str]:
    """Build MARCXML payloads as stored in biblio.record_entry.marc"""
    def _build(record_id: int, **kwargs) -> str:
        return record_xml(build_record(record_id, **kwargs))
    return _build


# =======================
# PROFILE FIXTURES
# =======================

@pytest.fixture
def profile_factory(tmp_path) -> Callable[..., OrganizationProfile]:
    """Build OrganizationProfile instances writing under tmp_path"""
    def _build(name: str = "Example Library", orgs=(4,), source_id: str = "example", **kwargs) -> OrganizationProfile:
        return OrganizationProfile(
            name=name,
            orgs=tuple(orgs),
            source_id=source_id,
            agency_code=kwargs.pop("agency_code", "EXL"),
            output_dir=kwargs.pop("output_dir", tmp_path / "out"),
            transfer=TransferConfig(host="sftp.example.org", user="exl", password="secret", remote_root="/incoming"),
            **kwargs,
        )
    return _build


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

INIT_SQL_PATH = Path(__file__).resolve().parent.parent / "docker" / "init-db.sql"


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance with the catalog schema loaded
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_export",
        password="test_password",
        dbname="test_catalog",
        driver=None,
    ) as postgres:
        with psycopg.connect(postgres.get_connection_url()) as conn:
            with conn.cursor() as cur:
                cur.execute(INIT_SQL_PATH.read_text())
            conn.commit()

        yield postgres


@pytest.fixture(scope="function")
def db_connection(postgres_container) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a database connection with all catalog tables emptied

    Yields:
        psycopg Connection object
    """
    with psycopg.connect(postgres_container.get_connection_url()) as conn:
        with conn.cursor() as cur:
            cur.execute("TRUNCATE auditor.asset_copy_history, asset.copy, asset.call_number CASCADE")
            cur.execute("TRUNCATE asset.copy_location, biblio.record_entry, actor.org_unit CASCADE")
            cur.execute("DELETE FROM asset.call_number_prefix WHERE id <> -1")
            cur.execute("DELETE FROM asset.call_number_suffix WHERE id <> -1")
        conn.commit()
        yield conn


@pytest.fixture(scope="function")
def catalog_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """Open DatabaseConnectionPool against the test container"""
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_catalog",
        user="test_export",
        password="test_password",
        statement_timeout_seconds=60,
    )
    with pool:
        yield pool


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep DB_* variables from the developer's shell out of tests"""
    for key in list(os.environ):
        if key.startswith("DB_"):
            monkeypatch.delenv(key, raising=False)


# =======================
# CLEANUP FIXTURES
# =======================

@pytest.fixture(autouse=True)
def reset_app_logger():
    """Drop handlers bound to captured streams once a test finishes"""
    yield
    logging.getLogger(DEFAULT_LOGGER_NAME).handlers.clear()
