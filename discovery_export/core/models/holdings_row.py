"""
HoldingsAnnotationRow model: per-record holdings data used to build 852 fields.
"""

from typing import Iterator, NamedTuple

from pydantic import BaseModel, Field, model_validator


class Holding(NamedTuple):
    branch: str
    location: str
    call_number: str
    prefix: str
    suffix: str


class HoldingsAnnotationRow(BaseModel):
    """
    Holdings for one bibliographic record, as parallel lists.

    Entry `i` of every list describes the same physical copy. The lists are
    aggregated in copy order, so their lengths always match.

    Attributes:
        record_id: Bibliographic record id
        branches: Owning branch name per copy
        locations: Shelving location name per copy
        call_numbers: Call number label per copy
        prefixes: Call number prefix label per copy ("" when none)
        suffixes: Call number suffix label per copy ("" when none)
    """

    record_id: int = Field(..., gt=0)
    branches: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    call_numbers: list[str] = Field(default_factory=list)
    prefixes: list[str] = Field(default_factory=list)
    suffixes: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_lists_same_length(self) -> "HoldingsAnnotationRow":
        """Validate that all parallel lists have the same length."""
        lengths = {
            "branches": len(self.branches),
            "locations": len(self.locations),
            "call_numbers": len(self.call_numbers),
            "prefixes": len(self.prefixes),
            "suffixes": len(self.suffixes),
        }
        if len(set(lengths.values())) > 1:
            raise ValueError(f"Holdings lists for record {self.record_id} differ in length: {lengths}")
        return self

    def __len__(self) -> int:
        return len(self.branches)

    def holdings(self) -> Iterator[Holding]:
        """Yield one Holding per copy, in aggregation order."""
        for values in zip(self.branches, self.locations, self.call_numbers, self.prefixes, self.suffixes):
            yield Holding(*values)
