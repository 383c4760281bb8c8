"""
Main Orchestrator for Splitbook

This module ties the record store, the pure balance engine and the
audit trail together and defines the end-to-end flows for:
1. Balances (read store → extract → aggregate → group → audit)
2. Settle-up (bulk mark settled / bulk delete → audit)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The engine never sees the store; it gets a snapshot
- A store that cannot be read means NO balance, never a partial one
- Bulk mutations are per-record and idempotent; atomic when the
  store offers transactions
- Every step is audited
"""

import asyncio
import logging
from typing import Iterable, Optional
from uuid import UUID

from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from splitbook.audit import AuditLogger, create_correlation_id
from splitbook.config import EngineSettings, get_settings
from splitbook.engine import UpstreamUnavailable, compute_balances
from splitbook.models.balance import BalanceSummary, EdgeRef, SourceKind
from splitbook.services.storage import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)


def _is_transient(error: BaseException) -> bool:
    """Storage errors are retried, except for records that simply don't exist."""
    return isinstance(error, StorageError) and not isinstance(error, NotFoundError)


class BulkOperationResult(BaseModel):
    """Outcome of a bulk settle or delete."""

    operation: str
    succeeded: list[EdgeRef] = Field(default_factory=list)
    failed: dict[str, str] = Field(
        default_factory=dict,
        description="EdgeRef string -> error message"
    )

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


class _StoreCaller:
    """Runs record store calls under the configured retry policy."""

    def __init__(self, store: RecordStoreInterface, settings: EngineSettings):
        self._store = store
        self._settings = settings

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._settings.store_retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self._settings.store_retry_min_wait,
                max=self._settings.store_retry_max_wait,
            ),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        )

    async def call(self, method, *args):
        async for attempt in self._retrying():
            with attempt:
                return await method(*args)


class BalanceFlow:
    """
    Orchestrates a balance read.

    Flow:
    1. Read unsettled expense shares and loan shares (concurrently, with retries)
    2. Run the pure engine over the snapshot
    3. Audit the result and every dropped record

    If either read fails for good, UpstreamUnavailable is raised and
    nothing is computed.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().engine
        self._caller = _StoreCaller(store, self._settings)
        self._audit_logger = audit_logger

    async def compute_balances(
        self,
        viewing_user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> BalanceSummary:
        """
        Compute balances for a user from the current store contents.

        Raises:
            UpstreamUnavailable: If the store could not be read
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            expense_shares, loan_shares = await asyncio.gather(
                self._caller.call(self._store.list_unsettled_expense_shares, viewing_user_id),
                self._caller.call(self._store.list_unsettled_loan_shares, viewing_user_id),
            )
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_upstream_unavailable(
                    viewing_user_id=viewing_user_id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise UpstreamUnavailable(
                f"Could not read records for {viewing_user_id}: {e}",
                viewing_user_id=viewing_user_id,
            ) from e

        summary = compute_balances(
            viewing_user_id,
            expense_shares,
            loan_shares,
            currency=self._settings.currency_code,
            places=self._settings.minor_unit_places,
            hide_zero_amount_edges=self._settings.hide_zero_amount_edges,
        )

        if self._audit_logger:
            await self._audit_logger.log_balances_computed(summary, correlation_id)

        return summary


class SettlementFlow:
    """
    Orchestrates settle-up actions on balance items.

    Each item is an EdgeRef from a BalanceSummary:
    - mark_settled uses share_id (pay an expense share / settle a loan share)
    - delete_sources uses source_id (delete the whole expense / loan)

    GUARANTEES:
    - Per-record operations are idempotent; retries never double count
    - Duplicate refs in one request are applied once
    - With a transactional store, a batch is all-or-nothing
    - Without one, failures are collected and the rest still apply
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().engine
        self._caller = _StoreCaller(store, self._settings)
        self._audit_logger = audit_logger

    async def _settle_one(self, ref: EdgeRef) -> bool:
        if ref.source_kind == SourceKind.EXPENSE:
            await self._caller.call(self._store.mark_expense_share_paid, ref.share_id)
        else:
            await self._caller.call(self._store.mark_loan_share_settled, ref.share_id)
        return True

    async def _delete_one(self, ref: EdgeRef) -> bool:
        if ref.source_kind == SourceKind.EXPENSE:
            return await self._caller.call(self._store.delete_expense, ref.source_id)
        return await self._caller.call(self._store.delete_loan, ref.source_id)

    async def _audit_applied(
        self,
        operation: str,
        applied: dict[EdgeRef, bool],
        correlation_id: UUID,
    ) -> None:
        if not self._audit_logger:
            return
        for ref, existed in applied.items():
            if operation == "mark_settled":
                await self._audit_logger.log_share_settled(ref, correlation_id)
            else:
                await self._audit_logger.log_source_deleted(ref, existed, correlation_id)

    async def _run_bulk(
        self,
        operation: str,
        refs: list[EdgeRef],
        apply_one,
        correlation_id: UUID,
    ) -> BulkOperationResult:
        result = BulkOperationResult(operation=operation)
        applied: dict[EdgeRef, bool] = {}

        if self._store.supports_transactions:
            try:
                async with self._store.transaction():
                    for ref in refs:
                        applied[ref] = await apply_one(ref)
            except Exception as e:
                if self._audit_logger:
                    await self._audit_logger.log_bulk_operation_failed(
                        operation=operation,
                        failed={str(ref): str(e) for ref in refs},
                        correlation_id=correlation_id,
                    )
                raise
            result.succeeded.extend(refs)
            await self._audit_applied(operation, applied, correlation_id)
            return result

        for ref in refs:
            try:
                applied[ref] = await apply_one(ref)
            except StorageError as e:
                result.failed[str(ref)] = str(e)
            except Exception as e:
                if self._audit_logger:
                    await self._audit_logger.log_error(
                        error_type=type(e).__name__,
                        error_message=str(e),
                        details={"operation": operation, "ref": str(ref)},
                        correlation_id=correlation_id,
                    )
                raise
            else:
                result.succeeded.append(ref)

        await self._audit_applied(operation, applied, correlation_id)
        if result.failed and self._audit_logger:
            await self._audit_logger.log_bulk_operation_failed(
                operation=operation,
                failed=result.failed,
                correlation_id=correlation_id,
            )
        return result

    async def mark_settled(
        self,
        refs: Iterable[EdgeRef],
        correlation_id: Optional[UUID] = None,
    ) -> BulkOperationResult:
        """
        Mark every referenced share as paid / settled.

        Raises:
            StorageError: Only for transactional stores, after rolling back
        """
        correlation_id = correlation_id or create_correlation_id()
        unique = list(dict.fromkeys(refs))
        return await self._run_bulk("mark_settled", unique, self._settle_one, correlation_id)

    async def delete_sources(
        self,
        refs: Iterable[EdgeRef],
        correlation_id: Optional[UUID] = None,
    ) -> BulkOperationResult:
        """
        Delete the expense or loan behind every referenced item.

        Several items of one expense or loan delete it once.

        Raises:
            StorageError: Only for transactional stores, after rolling back
        """
        correlation_id = correlation_id or create_correlation_id()
        by_source: dict[tuple[SourceKind, str], EdgeRef] = {}
        for ref in refs:
            by_source.setdefault((ref.source_kind, ref.source_id), ref)
        unique = list(by_source.values())
        return await self._run_bulk("delete_sources", unique, self._delete_one, correlation_id)


def create_app_components(
    store: Optional[RecordStoreInterface] = None,
    persist_audit: bool = True,
) -> tuple[BalanceFlow, SettlementFlow, RecordStoreInterface]:
    """
    Factory function to create all application components.

    Args:
        store: Record store backend. Defaults to an empty in-memory store.
        persist_audit: Keep audit events in an in-memory audit storage
                       as well as the local log.

    Returns:
        (balance_flow, settlement_flow, store)
    """
    settings = get_settings()
    engine_settings = settings.engine
    logging.getLogger("splitbook").setLevel(settings.app.effective_log_level)

    if store is None:
        store = InMemoryRecordStore(places=engine_settings.minor_unit_places)

    audit_logger = AuditLogger(InMemoryAuditStorage() if persist_audit else None)

    balance_flow = BalanceFlow(
        store=store,
        audit_logger=audit_logger,
        settings=engine_settings,
    )
    settlement_flow = SettlementFlow(
        store=store,
        audit_logger=audit_logger,
        settings=engine_settings,
    )

    return balance_flow, settlement_flow, store
