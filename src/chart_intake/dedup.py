"""
Duplicate scope detection and conflict resolution.

A scope (date, chart type, period, region) counts as a duplicate as soon as
the store holds any entry for it. A None region is the global chart and is
matched as a value: it never matches entries of a specific region.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from chart_intake.config import DedupConfig
from chart_intake.models import (
    ChartPeriod,
    ChartType,
    DuplicateCheck,
    DuplicatePolicy,
    IngestionScope,
    SourceKind,
)
from chart_intake.policy import UploadAction
from chart_intake.store.base import ChartStore

logger = logging.getLogger(__name__)

# Fallback actions when settings do not name one
DEFAULT_ACTIONS: dict[SourceKind, UploadAction] = {
    SourceKind.PLAYLIST: UploadAction.SKIP,
    SourceKind.JSON_API: UploadAction.SKIP,
    SourceKind.CSV_UPLOAD: UploadAction.ASK,
}


@dataclass
class ResolveOutcome:
    """What conflict resolution did to a scope."""

    deleted_count: int = 0
    should_skip_ingestion: bool = False


@dataclass
class HandleResult:
    deleted: int = 0
    skipped: bool = False


class DuplicateChecker:
    """Counts existing entries of a scope."""

    def __init__(self, store: ChartStore):
        self.store = store

    async def check(self, scope: IngestionScope) -> DuplicateCheck:
        count = await self.store.count_scope(scope)
        return DuplicateCheck(scope=scope, exists=count > 0, count=count)


class ConflictResolver:
    """
    Applies a duplicate policy to a scope before ingestion.

    - skip: ingestion is skipped iff the scope exists; nothing is mutated
    - replace: every entry of exactly this scope is deleted
    - update: no bulk action; the writer updates entries in place
    """

    def __init__(self, store: ChartStore):
        self.store = store

    async def resolve(self, scope: IngestionScope, policy: DuplicatePolicy) -> ResolveOutcome:
        if not isinstance(policy, DuplicatePolicy):
            raise TypeError(f"Expected DuplicatePolicy, got {policy!r}")

        if policy is DuplicatePolicy.SKIP:
            exists = await self.store.count_scope(scope) > 0
            if exists:
                logger.info(f"Skipping duplicate entries for {scope}")
            return ResolveOutcome(should_skip_ingestion=exists)

        if policy is DuplicatePolicy.REPLACE:
            deleted = await self.store.delete_scope(scope)
            return ResolveOutcome(deleted_count=deleted)

        return ResolveOutcome()


async def check_duplicates(
    store: ChartStore,
    date: str,
    chart_type: ChartType | str,
    chart_period: ChartPeriod | str,
    region: str | None,
) -> DuplicateCheck:
    """Check whether a scope already holds entries."""
    scope = IngestionScope.create(date, chart_type, chart_period, region)
    return await DuplicateChecker(store).check(scope)


async def handle_duplicates(
    store: ChartStore,
    date: str,
    chart_type: ChartType | str,
    chart_period: ChartPeriod | str,
    region: str | None,
    policy: DuplicatePolicy,
) -> HandleResult:
    """
    Apply a policy to a scope that may already be ingested.

    Returns:
        HandleResult; deleted is the replace count, skipped is True only
        for skip when the scope exists
    """
    scope = IngestionScope.create(date, chart_type, chart_period, region)
    outcome = await ConflictResolver(store).resolve(scope, policy)
    return HandleResult(deleted=outcome.deleted_count, skipped=outcome.should_skip_ingestion)


def get_default_policy(source_kind: SourceKind | str, config: DedupConfig | None = None) -> UploadAction:
    """
    Default duplicate action for a source kind.

    Configured values win; otherwise automated sources skip and manual
    uploads ask.
    """
    source_kind = SourceKind(source_kind)
    configured = getattr(config, source_kind.value, None) if config else None
    if configured is not None:
        return UploadAction(configured)
    return DEFAULT_ACTIONS[source_kind]
