"""
Record materializer.

Turns a stored bibliographic record into the bytes written to an export
batch. Delete batches only flip the leader record status to "d". Other
batches have their 852 holdings fields replaced with freshly built ones.
"""

import io
from typing import Protocol
from xml.sax import SAXException

from pymarc import Field, Record, Subfield, parse_xml_to_array
from pymarc.exceptions import PymarcException
from pymarc.leader import Leader

from discovery_export.core.exceptions import RecordParseError
from discovery_export.core.models import HoldingsAnnotationRow

HOLDINGS_TAG = "852"
HOLDINGS_INDICATORS = ["4", " "]
LEADER_STATUS_POSITION = 5
DELETED_STATUS = "d"


class PayloadSource(Protocol):
    def fetch(self, record_id: int) -> str | bytes: ...


def parse_record(record_id: int, payload: str | bytes) -> Record:
    """
    Parse a stored MARCXML or ISO 2709 payload.

    Raises:
        RecordParseError: If the payload holds no parsable record
    """
    data = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
    if not data.strip():
        raise RecordParseError(record_id, "empty payload")

    try:
        if data.lstrip()[:1] == b"<":
            records = [r for r in parse_xml_to_array(io.BytesIO(data), strict=False) if r is not None]
            if not records:
                raise RecordParseError(record_id, "MARCXML payload contains no record")
            record = records[0]
        else:
            record = Record(data=data, to_unicode=True, force_utf8=True)

        # MARCXML parsing may leave a plain string leader
        if not isinstance(record.leader, Leader):
            record.leader = Leader(str(record.leader))
    except (SAXException, PymarcException, UnicodeDecodeError, ValueError) as e:
        raise RecordParseError(record_id, f"{type(e).__name__}: {e}") from e

    return record


def serialize_record(record: Record) -> bytes:
    """Serialize to UTF-8 ISO 2709."""
    record.force_utf8 = True
    return record.as_marc()


def mark_deleted(record: Record) -> None:
    leader = str(record.leader)
    record.leader = Leader(leader[:LEADER_STATUS_POSITION] + DELETED_STATUS + leader[LEADER_STATUS_POSITION + 1:])


def build_holdings_fields(holdings_row: HoldingsAnnotationRow, agency_code: str) -> list[Field]:
    """One 852 per holding, in holdings order. Empty prefixes and suffixes are omitted."""
    fields = []
    for holding in holdings_row.holdings():
        subfields = [
            Subfield(code="a", value=agency_code),
            Subfield(code="b", value=holding.branch),
            Subfield(code="c", value=holding.location),
            Subfield(code="j", value=holding.call_number),
        ]
        if holding.prefix:
            subfields.append(Subfield(code="k", value=holding.prefix))
        if holding.suffix:
            subfields.append(Subfield(code="m", value=holding.suffix))
        fields.append(Field(tag=HOLDINGS_TAG, indicators=list(HOLDINGS_INDICATORS), subfields=subfields))
    return fields


def replace_holdings(record: Record, holdings_row: HoldingsAnnotationRow | None, agency_code: str) -> None:
    record.remove_fields(HOLDINGS_TAG)
    if holdings_row is None:
        return
    for field in build_holdings_fields(holdings_row, agency_code):
        record.add_ordered_field(field)


class RecordMaterializer:
    """
    Produces export bytes for one record id at a time.

    Stateless apart from its collaborators, so the same input always yields
    the same bytes.
    """

    def __init__(self, record_store: PayloadSource, agency_code: str):
        """
        Args:
            record_store: Source of stored payloads
            agency_code: Value written to 852 $a
        """
        self.record_store = record_store
        self.agency_code = agency_code

    def materialize(
        self,
        record_id: int,
        is_delete_batch: bool,
        holdings_row: HoldingsAnnotationRow | None = None,
    ) -> bytes:
        """
        Fetch, mutate and serialize one record.

        Args:
            record_id: Bibliographic record id
            is_delete_batch: Mark the record deleted instead of annotating it
            holdings_row: Holdings for the record, None when it has none

        Raises:
            RecordNotFoundError: If the record store has no payload
            RecordParseError: If the payload cannot be parsed
        """
        record = parse_record(record_id, self.record_store.fetch(record_id))

        if is_delete_batch:
            mark_deleted(record)
        else:
            replace_holdings(record, holdings_row, self.agency_code)

        return serialize_record(record)
