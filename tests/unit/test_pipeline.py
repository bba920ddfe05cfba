"""
Unit tests for export run orchestration.

The pipeline runs against a fake pool answering the real SQL constants, so
query engine, holdings index, record store, materializer and writer all run
for real.
"""

import io
from datetime import datetime
from pathlib import Path

import psycopg
import pytest
from pymarc import MARCReader

from discovery_export.catalog import queries
from discovery_export.core.models import BatchKind, BatchStatus, ExtractionWindow
from discovery_export.export.pipeline import ExportPipeline, batch_kinds_for
from discovery_export.export.writer import ExportWriter

NOW = datetime(2024, 4, 2, 3, 4, 5)


class FakeUploader:
    def __init__(self, succeed: bool = True, error: Exception | None = None):
        self.succeed = succeed
        self.error = error
        self.uploads = []

    def upload(self, file_path, kind, transfer):
        self.uploads.append((file_path.name, kind, transfer.host, file_path.read_bytes()))
        if self.error is not None:
            raise self.error
        return self.succeed


def holdings_for(params):
    return [
        {
            "record_id": record_id,
            "branches": ["Main Branch"],
            "locations": ["Stacks"],
            "call_numbers": [f"CALL {record_id}"],
            "prefixes": [""],
            "suffixes": ["REF"],
        }
        for record_id in params["records"]
        if record_id != 12
    ]


@pytest.fixture
def catalog_responses(marcxml_factory):
    payloads = {record_id: marcxml_factory(record_id) for record_id in (3, 5, 7, 12)}

    def payload_for(params):
        record_id = params["id"]
        return [{"id": record_id, "marc": payloads[record_id]}] if record_id in payloads else []

    return {
        queries.BASE_SET: [{"id": 5}, {"id": 5}, {"id": 12}, {"id": 3}],
        queries.CHANGED_SET_ROLLING: [{"id": 5}],
        queries.DELETED_SET_ROLLING: [{"id": 7}],
        queries.HOLDINGS_BY_RECORD: holdings_for,
        queries.RECORD_PAYLOAD: payload_for,
    }


def read_records(path):
    with open(path, "rb") as f:
        return list(MARCReader(f, to_unicode=True, force_utf8=True))


@pytest.mark.unit
def test_batch_kinds_for_windows():
    assert batch_kinds_for(ExtractionWindow.full()) == [BatchKind.FULL]
    assert batch_kinds_for(ExtractionWindow.rolling(NOW)) == [BatchKind.UPDATES, BatchKind.DELETES]


@pytest.mark.unit
class TestExportPipeline:
    """Tests for ExportPipeline"""

    def test_full_run_writes_enriched_records(self, fake_pool_factory, catalog_responses, profile_factory):
        pool = fake_pool_factory(catalog_responses)
        pipeline = ExportPipeline(pool, uploader=None, writer=ExportWriter(clock=lambda: NOW))

        outcomes = pipeline.run([profile_factory()], ExtractionWindow.full())

        assert len(outcomes) == 1
        outcome = outcomes[0]
        assert outcome.kind is BatchKind.FULL
        assert outcome.status is BatchStatus.WRITTEN
        assert outcome.record_count == 3
        assert outcome.file_path.name == "example-catalog-full-2024-04-02-03-04-05.mrc"

        records = read_records(outcome.file_path)
        assert [r["001"].data for r in records] == ["3", "5", "12"]
        assert records[0]["852"]["j"] == "CALL 3"
        assert records[0]["852"]["m"] == "REF"
        assert records[2].get_fields("852") == []

    def test_incremental_run_updates_then_deletes(self, fake_pool_factory, catalog_responses, profile_factory):
        pool = fake_pool_factory(catalog_responses)
        uploader = FakeUploader()
        pipeline = ExportPipeline(pool, uploader=uploader, writer=ExportWriter(clock=lambda: NOW))

        outcomes = pipeline.run([profile_factory()], ExtractionWindow.rolling(NOW))

        assert [(o.kind, o.status) for o in outcomes] == [
            (BatchKind.UPDATES, BatchStatus.UPLOADED),
            (BatchKind.DELETES, BatchStatus.UPLOADED),
        ]
        assert [u[1] for u in uploader.uploads] == [BatchKind.UPDATES, BatchKind.DELETES]

        # Holdings are only looked up for the updates batch
        holdings_calls = [params for sql, params in pool.calls if sql == queries.HOLDINGS_BY_RECORD]
        assert [params["records"] for params in holdings_calls] == [[5]]

        deletes = MARCReader(io.BytesIO(uploader.uploads[1][3]), to_unicode=True, force_utf8=True)
        (deleted,) = list(deletes)
        assert str(deleted.leader)[5] == "d"

        # Uploaded files are removed locally
        assert all(not o.file_path.exists() for o in outcomes)

    def test_transfer_failure_keeps_file(self, fake_pool_factory, catalog_responses, profile_factory):
        pipeline = ExportPipeline(
            fake_pool_factory(catalog_responses),
            uploader=FakeUploader(succeed=False),
            writer=ExportWriter(clock=lambda: NOW),
        )

        outcomes = pipeline.run([profile_factory()], ExtractionWindow.full())

        assert outcomes[0].status is BatchStatus.TRANSFER_FAILED
        assert outcomes[0].file_path.exists()
        assert not outcomes[0].succeeded

    def test_empty_set_skips_write_and_upload(self, fake_pool_factory, catalog_responses, profile_factory):
        catalog_responses[queries.DELETED_SET_ROLLING] = []
        uploader = FakeUploader()
        pipeline = ExportPipeline(
            fake_pool_factory(catalog_responses), uploader=uploader, writer=ExportWriter(clock=lambda: NOW)
        )

        outcomes = pipeline.run([profile_factory()], ExtractionWindow.rolling(NOW))

        assert outcomes[1].status is BatchStatus.EMPTY
        assert outcomes[1].file_path is None
        assert [u[1] for u in uploader.uploads] == [BatchKind.UPDATES]

    def test_missing_record_fails_batch_but_run_continues(
        self, fake_pool_factory, catalog_responses, profile_factory, tmp_path
    ):
        catalog_responses[queries.BASE_SET] = [{"id": 3}, {"id": 99}]
        pipeline = ExportPipeline(fake_pool_factory(catalog_responses), writer=ExportWriter(clock=lambda: NOW))
        first = profile_factory(name="First", source_id="first")
        second = profile_factory(name="Second", source_id="second")

        outcomes = pipeline.run([first, second], ExtractionWindow.full())

        assert [o.status for o in outcomes] == [BatchStatus.FAILED, BatchStatus.FAILED]
        assert "99" in outcomes[0].error
        assert list((tmp_path / "out").glob("*.mrc")) == []

    def test_query_failure_moves_to_next_organization(self, fake_pool_factory, profile_factory):
        pool = fake_pool_factory(error=psycopg.OperationalError("server closed the connection"))
        pipeline = ExportPipeline(pool, writer=ExportWriter(clock=lambda: NOW))

        outcomes = pipeline.run(
            [profile_factory(name="A", source_id="a"), profile_factory(name="B", source_id="b")],
            ExtractionWindow.rolling(NOW),
        )

        assert len(outcomes) == 4
        assert all(o.status is BatchStatus.FAILED for o in outcomes)
        assert "server closed the connection" in outcomes[0].error

    def test_holdings_index_cleared_after_batch(self, fake_pool_factory, catalog_responses, profile_factory):
        pipeline = ExportPipeline(fake_pool_factory(catalog_responses), writer=ExportWriter(clock=lambda: NOW))

        pipeline.process_batch(profile_factory(), BatchKind.UPDATES, ExtractionWindow.rolling(NOW))

        assert len(pipeline.holdings_index) == 0

    def test_cleanup_failure_after_upload_does_not_stop_run(
        self, fake_pool_factory, catalog_responses, profile_factory, monkeypatch
    ):
        def refuse_unlink(self, missing_ok=False):
            raise PermissionError(f"cannot remove {self}")

        monkeypatch.setattr(Path, "unlink", refuse_unlink)
        uploader = FakeUploader()
        pipeline = ExportPipeline(
            fake_pool_factory(catalog_responses), uploader=uploader, writer=ExportWriter(clock=lambda: NOW)
        )

        outcomes = pipeline.run(
            [profile_factory(name="A", source_id="a"), profile_factory(name="B", source_id="b")],
            ExtractionWindow.full(),
        )

        assert [(o.organization, o.status) for o in outcomes] == [
            ("A", BatchStatus.UPLOADED),
            ("B", BatchStatus.UPLOADED),
        ]
        assert all(o.succeeded for o in outcomes)
        assert len(uploader.uploads) == 2

    def test_uploader_exception_is_a_transfer_failure(
        self, fake_pool_factory, catalog_responses, profile_factory
    ):
        pipeline = ExportPipeline(
            fake_pool_factory(catalog_responses),
            uploader=FakeUploader(error=OSError("network unreachable")),
            writer=ExportWriter(clock=lambda: NOW),
        )

        outcomes = pipeline.run(
            [profile_factory(name="A", source_id="a"), profile_factory(name="B", source_id="b")],
            ExtractionWindow.full(),
        )

        assert [o.status for o in outcomes] == [BatchStatus.TRANSFER_FAILED, BatchStatus.TRANSFER_FAILED]
        assert all(o.file_path.exists() for o in outcomes)
