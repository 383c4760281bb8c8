"""
Tests for the balance and settlement flows.

Flows are async; tests drive them with asyncio.run against the
in-memory store, or a stub store for failure injection.
"""

import asyncio
import pytest
from decimal import Decimal

from splitbook.audit import AuditLogger
from splitbook.engine import UpstreamUnavailable
from splitbook.models.audit import AuditEventType
from splitbook.models.balance import EdgeRef, SourceKind
from splitbook.models.records import LoanDirection, User
from splitbook.orchestrator import BalanceFlow, SettlementFlow, create_app_components
from splitbook.services.storage import (
    ConnectionError,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    NotFoundError,
    StorageError,
)


class FlakyStore(InMemoryRecordStore):
    """In-memory store whose reads fail a set number of times first."""

    def __init__(self, read_failures: int = 0, error: Exception = None):
        super().__init__()
        self.read_failures = read_failures
        self.error = error or ConnectionError("store unreachable")
        self.read_calls = 0

    async def list_unsettled_expense_shares(self, viewing_user_id):
        self.read_calls += 1
        if self.read_failures > 0:
            self.read_failures -= 1
            raise self.error
        return await super().list_unsettled_expense_shares(viewing_user_id)


class NonTransactionalStore(InMemoryRecordStore):
    """In-memory store that reports no transaction support."""

    def __init__(self):
        super().__init__()
        self.settle_calls = 0

    @property
    def supports_transactions(self) -> bool:
        return False

    async def mark_loan_share_settled(self, share_id):
        self.settle_calls += 1
        await super().mark_loan_share_settled(share_id)


def _scenario(store: InMemoryRecordStore, me: User, alice: User, bob: User):
    """300 split three ways with Alice and Bob; 50 borrowed from Alice."""
    expense = store.create_expense(me, "300", "food", [alice, bob], title="Dinner")
    loan = store.create_loan(me, "50", LoanDirection.BORROW, [alice], title="Cab")
    return expense, loan


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


class TestBalanceFlow:
    """Tests for BalanceFlow.compute_balances."""

    def test_compute_from_store(self, me, alice, bob, fast_settings, audit_logger,
                                audit_storage):
        store = InMemoryRecordStore()
        _scenario(store, me, alice, bob)
        flow = BalanceFlow(store, audit_logger=audit_logger, settings=fast_settings)

        summary = asyncio.run(flow.compute_balances(me.id))

        assert summary.total_owed_to_me == Decimal("200")
        assert summary.total_owed_by_me == Decimal("50")
        assert [g.total for g in summary.owed_groups] == [Decimal("100"), Decimal("100")]
        assert [g.counterparty.id for g in summary.owe_groups] == [alice.id]

        event_types = [e.event_type for e in audit_storage.events]
        assert event_types == [AuditEventType.BALANCES_COMPUTED]

    def test_counterparty_sees_mirror(self, me, alice, bob, fast_settings):
        store = InMemoryRecordStore()
        _scenario(store, me, alice, bob)
        flow = BalanceFlow(store, settings=fast_settings)

        summary = asyncio.run(flow.compute_balances(alice.id))

        assert summary.total_owed_by_me == Decimal("100")
        assert summary.total_owed_to_me == Decimal("50")

    def test_idempotent_recompute(self, me, alice, bob, fast_settings):
        store = InMemoryRecordStore()
        _scenario(store, me, alice, bob)
        flow = BalanceFlow(store, settings=fast_settings)

        first = asyncio.run(flow.compute_balances(me.id))
        second = asyncio.run(flow.compute_balances(me.id))

        assert first == second

    def test_transient_failure_retried(self, me, alice, bob, fast_settings):
        store = FlakyStore(read_failures=2)
        _scenario(store, me, alice, bob)
        flow = BalanceFlow(store, settings=fast_settings)

        summary = asyncio.run(flow.compute_balances(me.id))

        assert store.read_calls == 3
        assert summary.total_owed_to_me == Decimal("200")

    def test_persistent_failure_raises_upstream_unavailable(
        self, me, alice, bob, fast_settings, audit_logger, audit_storage
    ):
        """Test no partial totals are returned when the store can't be read."""
        store = FlakyStore(read_failures=10)
        _scenario(store, me, alice, bob)
        flow = BalanceFlow(store, audit_logger=audit_logger, settings=fast_settings)

        with pytest.raises(UpstreamUnavailable) as exc_info:
            asyncio.run(flow.compute_balances(me.id))

        assert store.read_calls == fast_settings.store_retry_attempts
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert exc_info.value.viewing_user_id == me.id
        assert [e.event_type for e in audit_storage.events] == [
            AuditEventType.UPSTREAM_UNAVAILABLE
        ]

    def test_non_storage_error_not_retried(self, me, fast_settings):
        store = FlakyStore(read_failures=5, error=RuntimeError("bad query"))
        flow = BalanceFlow(store, settings=fast_settings)

        with pytest.raises(UpstreamUnavailable):
            asyncio.run(flow.compute_balances(me.id))
        assert store.read_calls == 1

    def test_dropped_records_audited(self, me, fast_settings, audit_logger, audit_storage):
        store = InMemoryRecordStore()
        nameless = User(id="u-x", email="x@example.com")
        store.create_expense(me, "20", "food", [nameless])
        flow = BalanceFlow(store, audit_logger=audit_logger, settings=fast_settings)

        summary = asyncio.run(flow.compute_balances(me.id))

        assert summary.total_owed_to_me == Decimal("10")
        assert summary.owed_groups == []
        assert [e.event_type for e in audit_storage.events] == [
            AuditEventType.COUNTERPARTY_MISSING,
            AuditEventType.BALANCES_COMPUTED,
        ]


class TestSettlementFlow:
    """Tests for bulk settle and delete."""

    def test_mark_settled_removes_amounts(self, me, alice, bob, fast_settings):
        store = InMemoryRecordStore()
        _scenario(store, me, alice, bob)
        balances = BalanceFlow(store, settings=fast_settings)
        settlement = SettlementFlow(store, settings=fast_settings)

        summary = asyncio.run(balances.compute_balances(me.id))
        alice_refs = [
            e.ref for g in (*summary.owe_groups, *summary.owed_groups)
            if g.counterparty.id == alice.id for e in g.edges
        ]
        result = asyncio.run(settlement.mark_settled(alice_refs))
        after = asyncio.run(balances.compute_balances(me.id))

        assert result.all_succeeded
        assert len(result.succeeded) == 2
        assert after.total_owed_to_me == Decimal("100")
        assert after.total_owed_by_me == Decimal("0")
        assert [g.counterparty.id for g in after.owed_groups] == [bob.id]

    def test_mark_settled_twice_is_idempotent(self, me, alice, bob, fast_settings):
        store = InMemoryRecordStore()
        _scenario(store, me, alice, bob)
        balances = BalanceFlow(store, settings=fast_settings)
        settlement = SettlementFlow(store, settings=fast_settings)

        ref = asyncio.run(balances.compute_balances(me.id)).owed_groups[0].edges[0].ref
        asyncio.run(settlement.mark_settled([ref]))
        once = asyncio.run(balances.compute_balances(me.id))
        asyncio.run(settlement.mark_settled([ref, ref]))
        twice = asyncio.run(balances.compute_balances(me.id))

        assert once == twice
        assert once.total_owed_to_me == Decimal("100")

    def test_duplicate_refs_applied_once(self, me, alice, fast_settings):
        store = NonTransactionalStore()
        loan = store.create_loan(me, "10", LoanDirection.LEND, [alice])
        share = store.loan_shares_for(loan.id)[0]
        ref = EdgeRef(source_kind=SourceKind.LOAN, source_id=loan.id, share_id=share.id)

        result = asyncio.run(SettlementFlow(store, settings=fast_settings).mark_settled([ref, ref]))

        assert store.settle_calls == 1
        assert result.succeeded == [ref]

    def test_unknown_share_collected_without_transactions(
        self, me, alice, fast_settings, audit_logger, audit_storage
    ):
        store = NonTransactionalStore()
        loan = store.create_loan(me, "10", LoanDirection.LEND, [alice])
        good = EdgeRef(source_kind=SourceKind.LOAN, source_id=loan.id,
                       share_id=store.loan_shares_for(loan.id)[0].id)
        missing = EdgeRef(source_kind=SourceKind.LOAN, source_id=loan.id, share_id="nope")
        flow = SettlementFlow(store, audit_logger=audit_logger, settings=fast_settings)

        result = asyncio.run(flow.mark_settled([missing, good]))

        assert result.succeeded == [good]
        assert list(result.failed) == [str(missing)]
        assert store.settle_calls == 2  # NotFoundError is not retried
        assert store.loan_shares_for(loan.id)[0].is_settled is True
        assert AuditEventType.BULK_OPERATION_FAILED in [
            e.event_type for e in audit_storage.events
        ]

    def test_transactional_batch_rolls_back(self, me, alice, bob, fast_settings):
        store = InMemoryRecordStore()
        expense, _ = _scenario(store, me, alice, bob)
        good = EdgeRef(source_kind=SourceKind.EXPENSE, source_id=expense.id,
                       share_id=store.expense_shares_for(expense.id)[0].id)
        missing = EdgeRef(source_kind=SourceKind.EXPENSE, source_id=expense.id,
                          share_id="nope")
        flow = SettlementFlow(store, settings=fast_settings)

        with pytest.raises(NotFoundError):
            asyncio.run(flow.mark_settled([good, missing]))

        assert not any(s.is_paid for s in store.expense_shares_for(expense.id))

    def test_delete_sources_once_per_source(self, me, alice, bob, fast_settings,
                                            audit_logger, audit_storage):
        store = InMemoryRecordStore()
        _scenario(store, me, alice, bob)
        balances = BalanceFlow(store, settings=fast_settings)
        settlement = SettlementFlow(store, audit_logger=audit_logger, settings=fast_settings)

        summary = asyncio.run(balances.compute_balances(me.id))
        expense_refs = [e.ref for g in summary.owed_groups for e in g.edges]
        result = asyncio.run(settlement.delete_sources(expense_refs))
        after = asyncio.run(balances.compute_balances(me.id))

        assert len(result.succeeded) == 1
        assert after.total_owed_to_me == Decimal("0")
        assert after.total_owed_by_me == Decimal("50")
        deleted = [e for e in audit_storage.events
                   if e.event_type == AuditEventType.SOURCE_DELETED]
        assert len(deleted) == 1
        assert deleted[0].details["existed"] is True

    def test_delete_already_absent_is_success(self, me, alice, fast_settings):
        store = InMemoryRecordStore()
        loan = store.create_loan(me, "10", LoanDirection.BORROW, [alice])
        ref = EdgeRef(source_kind=SourceKind.LOAN, source_id=loan.id,
                      share_id=store.loan_shares_for(loan.id)[0].id)
        flow = SettlementFlow(store, settings=fast_settings)

        asyncio.run(flow.delete_sources([ref]))
        again = asyncio.run(flow.delete_sources([ref]))

        assert again.all_succeeded


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_defaults_to_in_memory_store(self, me, alice):
        balance_flow, settlement_flow, store = create_app_components()

        assert isinstance(store, InMemoryRecordStore)
        store.create_expense(me, "90", "food", [alice, User(id="u-c", name="C", email="c@x")])
        summary = asyncio.run(balance_flow.compute_balances(me.id))
        assert summary.total_owed_to_me == Decimal("60")

    def test_uses_given_store(self):
        store = InMemoryRecordStore()
        _, _, returned = create_app_components(store=store, persist_audit=False)
        assert returned is store


class TestStorageErrors:
    """Tests for storage exception hierarchy."""

    def test_not_found_is_storage_error(self):
        assert issubclass(NotFoundError, StorageError)
        assert issubclass(ConnectionError, StorageError)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
