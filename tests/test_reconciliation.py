"""Tests for income reconciliation against the Sheet Store."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from agency_ledger.ledger import Ledger
from agency_ledger.models import (
    Identity,
    IncomeTransaction,
    LedgerValidationError,
    PermissionDeniedError,
    RecordStatus,
    Role,
    ShiftLocation,
)
from agency_ledger.reconciliation import ReconciliationService
from agency_ledger.sheets import SheetStoreError

SHEET = "sales_report"


async def loaded_service(store, actor=None):
    service = ReconciliationService(Ledger(), store, actor=actor)
    await service.load()
    store.calls.clear()
    return service


def by_agent(service, agent):
    return next(r for r in service.ledger if r.agent_name == agent)


class TestLoad:
    @pytest.mark.asyncio
    async def test_load_maps_rows(self, sheet_store):
        service = await loaded_service(sheet_store)

        assert sorted(r.source_row for r in service.ledger) == [2, 3, 5]
        assert by_agent(service, "Noa").amount_ils == Decimal("360")
        assert by_agent(service, "Dana").status == RecordStatus.APPROVED

    @pytest.mark.asyncio
    async def test_load_failure_propagates(self, sheet_store):
        sheet_store.fail_on.add("read")
        service = ReconciliationService(Ledger(), sheet_store)

        with pytest.raises(SheetStoreError):
            await service.load()

    @pytest.mark.asyncio
    async def test_pending_excludes_approved_and_unassigned(self, sheet_store):
        service = await loaded_service(sheet_store)
        service.ledger.add(IncomeTransaction(id="orphan", amount_ils=Decimal("50")))
        service.ledger.add(
            IncomeTransaction(
                id="newest", agent_name="Noa", amount_ils=Decimal("50"), date=date(2026, 4, 1)
            )
        )

        pending = service.pending()

        assert pending[0].id == "newest"
        assert {r.agent_name for r in pending} == {"Noa", "Shira"}
        assert len(pending) == 3

    @pytest.mark.asyncio
    async def test_offline_load_keeps_ledger(self):
        existing = IncomeTransaction(id="x", agent_name="Noa", amount_ils=Decimal("10"))
        service = ReconciliationService(Ledger([existing]))

        assert service.offline
        assert await service.load() == [existing]


class TestApprove:
    """Approval is locally authoritative."""

    @pytest.mark.asyncio
    async def test_approve_writes_only_verified_cell(self, sheet_store):
        service = await loaded_service(sheet_store)
        before = list(sheet_store.sheets[SHEET][1])

        outcome = await service.approve(by_agent(service, "Noa"))

        assert outcome.synced
        assert outcome.record.verified
        assert sheet_store.calls == [("update", SHEET, 2)]
        after = sheet_store.sheets[SHEET][1]
        assert after[12] == "V"
        assert after[:12] == before[:12]
        assert after[13:] == before[13:]

    @pytest.mark.asyncio
    async def test_approve_is_idempotent(self, sheet_store):
        service = await loaded_service(sheet_store)
        record = by_agent(service, "Noa")

        await service.approve(record)
        outcome = await service.approve(record)

        assert outcome.synced
        assert sheet_store.actions() == ["update"]

    @pytest.mark.asyncio
    async def test_already_verified_makes_no_call(self, sheet_store):
        service = await loaded_service(sheet_store)

        await service.approve(by_agent(service, "Dana"))

        assert sheet_store.calls == []

    @pytest.mark.asyncio
    async def test_sync_failure_still_approves_locally(self, sheet_store):
        service = await loaded_service(sheet_store)
        sheet_store.fail_on.add("update")

        outcome = await service.approve(by_agent(service, "Noa"))

        assert not outcome.synced
        assert "HTTP 500" in outcome.error
        assert by_agent(service, "Noa").verified
        assert sheet_store.sheets[SHEET][1][12] == ""

    @pytest.mark.asyncio
    async def test_cancelled_cannot_be_approved(self, sheet_store):
        service = await loaded_service(sheet_store)
        cancelled = await service.cancel(by_agent(service, "Noa"))
        sheet_store.calls.clear()

        with pytest.raises(LedgerValidationError):
            await service.approve(cancelled)
        assert sheet_store.calls == []

    @pytest.mark.asyncio
    async def test_concurrent_approvals_sync_once(self, sheet_store):
        service = await loaded_service(sheet_store)
        record = by_agent(service, "Noa")

        await asyncio.gather(service.approve(record), service.approve(record))

        assert sheet_store.actions() == ["update"]

    @pytest.mark.asyncio
    async def test_unknown_record(self, sheet_store):
        service = await loaded_service(sheet_store)

        with pytest.raises(LedgerValidationError):
            await service.approve(IncomeTransaction(id="ghost", source_row=9))

    @pytest.mark.asyncio
    async def test_agents_cannot_approve(self, sheet_store):
        service = await loaded_service(sheet_store, actor=Identity(name="Noa", role=Role.AGENT))

        with pytest.raises(PermissionDeniedError):
            await service.approve(by_agent(service, "Noa"))
        assert sheet_store.calls == []

    @pytest.mark.asyncio
    async def test_round_trip_after_reload(self, sheet_store):
        service = await loaded_service(sheet_store)
        await service.approve(by_agent(service, "Shira"))

        reloaded = await loaded_service(sheet_store)

        assert by_agent(reloaded, "Shira").verified
        assert by_agent(reloaded, "Shira").amount_ils == Decimal("500")


class TestApproveAll:
    @pytest.mark.asyncio
    async def test_approves_every_pending(self, sheet_store):
        service = await loaded_service(sheet_store)

        report = await service.approve_all()

        assert len(report.approved) == 2
        assert report.fully_synced
        assert service.pending() == []

    @pytest.mark.asyncio
    async def test_sync_failures_do_not_stop_the_batch(self, sheet_store):
        service = await loaded_service(sheet_store)
        sheet_store.fail_on.add("update")

        report = await service.approve_all()

        assert len(report.approved) == 2
        assert set(report.sync_failures) == set(report.approved)
        assert not report.fully_synced
        assert sheet_store.actions() == ["update", "update"]
        assert service.pending() == []

    @pytest.mark.asyncio
    async def test_invalid_records_are_skipped(self, sheet_store):
        service = await loaded_service(sheet_store)
        noa = by_agent(service, "Noa")
        shira = by_agent(service, "Shira")
        await service.cancel(noa)

        report = await service.approve_all([noa, shira])

        assert report.approved == [shira.id]
        assert noa.id in report.skipped


class TestReject:
    """Rejection removes the record locally even if the delete fails."""

    @pytest.mark.asyncio
    async def test_reject_deletes_row_and_renumbers(self, sheet_store):
        service = await loaded_service(sheet_store)

        outcome = await service.reject(by_agent(service, "Noa"))

        assert outcome.synced
        assert sheet_store.calls == [("delete", SHEET, 2)]
        assert len(service.ledger) == 2
        assert by_agent(service, "Shira").source_row == 2
        assert by_agent(service, "Dana").source_row == 4

        # Renumbered rows keep addressing the right sheet row
        await service.approve(by_agent(service, "Shira"))
        row = sheet_store.sheets[SHEET][1]
        assert row[1] == "Shira"
        assert row[12] == "V"

    @pytest.mark.asyncio
    async def test_delete_failure_still_removes_locally(self, sheet_store):
        service = await loaded_service(sheet_store)
        sheet_store.fail_on.add("delete")

        outcome = await service.reject(by_agent(service, "Noa"))

        assert not outcome.synced
        assert "Noa" not in {r.agent_name for r in service.ledger}
        assert by_agent(service, "Shira").source_row == 3

    @pytest.mark.asyncio
    async def test_local_only_record_never_calls_store(self, sheet_store):
        service = await loaded_service(sheet_store)
        local = IncomeTransaction(id="local", agent_name="Noa", amount_ils=Decimal("120"))
        service.ledger.add(local)

        outcome = await service.reject(local)

        assert outcome.synced
        assert "local" not in service.ledger
        assert sheet_store.calls == []

    @pytest.mark.asyncio
    async def test_only_pending_can_be_rejected(self, sheet_store):
        service = await loaded_service(sheet_store)

        with pytest.raises(LedgerValidationError):
            await service.reject(by_agent(service, "Dana"))
        assert sheet_store.calls == []
        assert len(service.ledger) == 3


class TestCancel:
    """Cancellation is confirmed by the store before the ledger changes."""

    @pytest.mark.asyncio
    async def test_cancel_zeroes_amounts_and_keeps_original(self, sheet_store):
        service = await loaded_service(sheet_store)

        cancelled = await service.cancel(by_agent(service, "Noa"))

        assert cancelled.cancelled
        assert cancelled.amount_ils == 0
        assert cancelled.amount_usd == 0
        assert cancelled.original_amount == Decimal("360")
        assert cancelled.status == RecordStatus.CANCELLED
        assert sheet_store.calls == [("update", SHEET, 2)]
        row = sheet_store.sheets[SHEET][1]
        assert row[5] == 100
        assert row[6] == 360
        assert row[15] == "V"

        reloaded = await loaded_service(sheet_store)
        assert by_agent(reloaded, "Noa").cancelled
        assert by_agent(reloaded, "Noa").original_amount == Decimal("360")

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, sheet_store):
        service = await loaded_service(sheet_store)
        record = by_agent(service, "Noa")

        await service.cancel(record)
        again = await service.cancel(record)

        assert again.original_amount == Decimal("360")
        assert sheet_store.actions() == ["update"]

    @pytest.mark.asyncio
    async def test_failed_cancel_leaves_ledger_unchanged(self, sheet_store):
        service = await loaded_service(sheet_store)
        record = by_agent(service, "Noa")
        sheet_store.fail_on.add("update")

        with pytest.raises(SheetStoreError):
            await service.cancel(record)

        assert service.ledger.get(record.id) == record


class TestToggleDirectPayment:
    @pytest.mark.asyncio
    async def test_toggle_writes_full_row(self, sheet_store):
        service = await loaded_service(sheet_store)
        before = list(sheet_store.sheets[SHEET][2])

        updated = await service.toggle_direct_payment(by_agent(service, "Shira"))

        assert updated.paid_to_client_directly
        row = sheet_store.sheets[SHEET][2]
        assert row[14] == "V"
        assert row[1:5] == before[1:5]
        assert row[13] == "חוץ"

        toggled_back = await service.toggle_direct_payment(updated)
        assert not toggled_back.paid_to_client_directly
        assert sheet_store.sheets[SHEET][2][14] == ""

    @pytest.mark.asyncio
    async def test_failed_toggle_leaves_ledger_unchanged(self, sheet_store):
        service = await loaded_service(sheet_store)
        record = by_agent(service, "Shira")
        sheet_store.fail_on.add("update")

        with pytest.raises(SheetStoreError):
            await service.toggle_direct_payment(record)

        assert not service.ledger.get(record.id).paid_to_client_directly

    @pytest.mark.asyncio
    async def test_offline_toggle_is_local(self):
        record = IncomeTransaction(id="x", source_row=4, amount_ils=Decimal("10"))
        service = ReconciliationService(Ledger([record]))

        updated = await service.toggle_direct_payment(record)

        assert updated.paid_to_client_directly


class TestSubmit:
    @pytest.mark.asyncio
    async def test_agent_submission_is_appended(self, sheet_store):
        service = await loaded_service(sheet_store, actor=Identity(name="Noa", role=Role.AGENT))

        record = await service.submit(
            client_name="Yael",
            amount_usd=Decimal("50"),
            platform="Fansly",
            on_date=date(2026, 3, 20),
            hour="22:10",
            shift_location=ShiftLocation.REMOTE,
            agent_name="Someone else",
        )

        assert record.agent_name == "Noa"
        assert record.amount_ils == Decimal("180")
        assert record.usd_rate == Decimal("3.6")
        assert record.status == RecordStatus.PENDING
        assert sheet_store.actions() == ["append", "read"]
        assert record.source_row == len(sheet_store.sheets[SHEET]) == 6
        assert sheet_store.sheets[SHEET][-1][1:3] == ["Noa", "Yael"]
        assert record in service.pending()

    @pytest.mark.asyncio
    async def test_unresolved_position_is_local(self, sheet_store):
        service = await loaded_service(sheet_store)
        sheet_store.fail_on.add("read")

        record = await service.submit(client_name="Yael", amount_ils=Decimal("300"), agent_name="Dana")

        assert record.source_row == 0
        assert record.id in service.ledger

    @pytest.mark.asyncio
    async def test_failed_append_adds_nothing(self, sheet_store):
        service = await loaded_service(sheet_store)
        sheet_store.fail_on.add("append")

        with pytest.raises(SheetStoreError):
            await service.submit(client_name="Yael", amount_ils=Decimal("300"), agent_name="Dana")
        assert len(service.ledger) == 3

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"client_name": "", "amount_ils": Decimal("100")},
            {"client_name": "Yael"},
            {"client_name": "Yael", "amount_ils": Decimal("-5")},
            {"client_name": "Yael", "amount_ils": "abc"},
            {"client_name": "Yael", "amount_ils": Decimal("NaN")},
            {"client_name": "Yael", "amount_usd": Decimal("10"), "usd_rate": Decimal("Infinity")},
            {"client_name": "Yael", "amount_usd": Decimal("10"), "usd_rate": Decimal("-3.6")},
        ],
    )
    @pytest.mark.asyncio
    async def test_validation_happens_before_io(self, sheet_store, kwargs):
        service = await loaded_service(sheet_store)

        with pytest.raises(LedgerValidationError):
            await service.submit(agent_name="Dana", **kwargs)
        assert sheet_store.calls == []

    @pytest.mark.asyncio
    async def test_admin_must_name_agent(self, sheet_store):
        service = await loaded_service(sheet_store)

        with pytest.raises(LedgerValidationError):
            await service.submit(client_name="Yael", amount_ils=Decimal("100"))
