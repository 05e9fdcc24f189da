"""Property-based tests for chart-intake.

Uses hypothesis to check invariants of region handling, row parsing and
batching.
"""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st
from conftest import build_csv

from chart_intake.batch import batch_iter
from chart_intake.log_setup import redact_secrets
from chart_intake.models import CanonicalRow, ChartPeriod, ChartType, IngestionScope, normalize_region
from chart_intake.sources.base import parse_optional_int
from chart_intake.sources.flatfile import parse_flatfile


region_codes = st.one_of(st.none(), st.just(""), st.just("global"), st.from_regex(r"[a-z]{2,6}", fullmatch=True))

# Region properties


@given(region_codes)
def test_normalize_region_idempotent(region: str | None):
    """Property: Normalizing a region twice should equal normalizing once."""
    assert normalize_region(normalize_region(region)) == normalize_region(region)


@given(region_codes)
def test_global_forms_share_a_scope(region: str | None):
    """Property: Scopes differ only if their normalized regions differ."""
    scope = IngestionScope.create("2025-12-03", "regional", "daily", region)
    if region in (None, "", "global"):
        assert scope == IngestionScope.create("2025-12-03", "regional", "daily")
    else:
        assert scope.region == region


# Integer parsing properties


@given(st.integers(min_value=1, max_value=10**9))
def test_positive_ints_round_trip(value: int):
    assert parse_optional_int(str(value)) == value
    assert parse_optional_int(f"  {value}  ") == value


@given(st.text(alphabet=st.characters(blacklist_categories=("Nd",)), max_size=20))
def test_text_without_digits_is_absent(text: str):
    assert parse_optional_int(text) is None


# Batching properties


@given(st.lists(st.integers(), max_size=300), st.integers(min_value=1, max_value=60))
@settings(max_examples=100)
def test_batches_cover_items_in_order(items: list[int], batch_size: int):
    """Property: Batches concatenate back to the input and never exceed the size."""
    batches = list(batch_iter(items, batch_size))

    assert [item for _, batch in batches for item in batch] == items
    assert all(0 < len(batch) <= batch_size for _, batch in batches)
    assert [start for start, _ in batches] == list(range(0, len(items), batch_size))


# Flat file properties

names = st.text(
    alphabet=st.characters(whitelist_categories=("L", "N", "P"), whitelist_characters=" "),
    min_size=1,
    max_size=40,
).filter(lambda s: s.strip() == s)


@given(st.lists(st.tuples(names, names), min_size=1, max_size=30))
@settings(max_examples=50)
def test_valid_rows_survive_csv(pairs: list[tuple[str, str]]):
    """Property: Every valid row written to a chart CSV is parsed back with its rank."""
    rows = [
        CanonicalRow(
            rank=i,
            uri=f"spotify:track:T{i}",
            artist_names=artist,
            track_name=track,
            streams=str(10**15 + i),
        )
        for i, (artist, track) in enumerate(pairs, start=1)
    ]

    parsed = parse_flatfile(build_csv(rows), ChartType.REGIONAL, ChartPeriod.DAILY, "2025-12-03")

    assert parsed.skipped_rows == 0
    assert [(r.rank, r.artist_names, r.track_name, r.streams) for r in parsed.rows] == [
        (r.rank, r.artist_names, r.track_name, r.streams) for r in rows
    ]


# Redaction properties


@given(st.from_regex(r"[A-Za-z0-9]{8,40}", fullmatch=True))
def test_secrets_never_logged(secret: str):
    for message in (f"client_secret={secret}", f"Authorization: Bearer {secret}"):
        assert secret not in redact_secrets(message)
