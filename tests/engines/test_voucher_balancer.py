"""
Tests for the payment voucher balancer.

Covers:
- Balance checks in minor units with a sub-unit tolerance
- Commit: line tax, header tax, cost-center cascade, rejection
- Frozen vouchers and the status workflow
- Reversal of a paid voucher
"""

from datetime import date
from decimal import Decimal

import pytest

from propfin_engines.voucher_balancer import (
    check_balance,
    commit,
    ensure_editable,
    recompute_line,
    reverse,
    transition,
    update_line,
    validate,
)
from propfin_kernel.domain.cost_center import CostCenterSelection
from propfin_kernel.domain.values import Money
from propfin_kernel.domain.voucher import Attachment, VoucherLine, VoucherStatus
from propfin_kernel.exceptions import (
    CurrencyMismatchError,
    FrozenError,
    IllegalTransitionError,
    InvalidParentError,
    OutOfBalanceError,
    ValidationError,
)


def usd(amount: str) -> Money:
    return Money.of(amount, "USD")


class TestBalance:
    """Lines must sum to the header total."""

    def test_balanced(self, make_voucher):
        check = validate(make_voucher())
        assert check.is_balanced
        assert check.difference.is_zero

    def test_short_by_one_cent(self, make_voucher):
        voucher = make_voucher("500.00", lines=("300.00", "199.99"))
        with pytest.raises(OutOfBalanceError) as exc_info:
            validate(voucher)
        assert exc_info.value.difference == Decimal("0.01")
        assert exc_info.value.line_total == Decimal("499.99")
        assert exc_info.value.header_total == Decimal("500.00")
        assert exc_info.value.currency == "USD"

    def test_fixing_the_line_balances(self, make_voucher):
        voucher = make_voucher("500.00", lines=("300.00", "199.99"))
        fixed = update_line(voucher, 1, amount="200.00")
        assert validate(fixed).is_balanced

    def test_lines_over_header_gives_negative_difference(self, make_voucher):
        check = check_balance(make_voucher("500.00", lines=("300.00", "250.00")))
        assert not check.is_balanced
        assert check.difference == usd("-50.00")

    def test_no_lines_with_zero_total(self, make_voucher):
        assert check_balance(make_voucher("0.00", lines=())).is_balanced

    def test_whole_unit_tolerance_accepts_one_cent(self, make_voucher):
        voucher = make_voucher("500.00", lines=("300.00", "199.99"))
        assert check_balance(voucher, tolerance=Decimal("1")).is_balanced

    def test_error_carries_signed_difference(self, make_voucher):
        voucher = make_voucher("500.00", lines=("300.00", "199.99"))
        with pytest.raises(OutOfBalanceError) as exc_info:
            validate(voucher)
        assert exc_info.value.difference == Decimal("0.01")


class TestCommit:
    """Tests for create/update of a voucher."""

    def test_create_balanced(self, make_voucher):
        voucher = make_voucher()
        assert commit(voucher) == voucher

    def test_create_out_of_balance_rejected(self, make_voucher):
        with pytest.raises(OutOfBalanceError):
            commit(make_voucher("500.00", lines=("300.00", "199.99")))

    def test_line_tax_derived(self, make_voucher):
        line = VoucherLine.of("ACC-1", "500.00", "USD", tax_percentage=Decimal("5"))
        committed = commit(make_voucher("500.00", lines=(line,)))
        assert committed.lines[0].tax_amount == usd("25.00")

    def test_stale_line_tax_rederived_on_update(self, make_voucher):
        line = VoucherLine.of("ACC-1", "300.00", "USD", tax_percentage=Decimal("10"))
        stored = commit(make_voucher("300.00", lines=(line,)))
        tampered = stored.with_changes(
            lines=(stored.lines[0].with_changes(tax_amount=usd("55.00")),)
        )
        committed = commit(tampered, previous=stored)
        assert committed.lines[0].tax_amount == usd("30.00")

    def test_update_line_leaves_other_lines(self, make_voucher):
        lines = (
            VoucherLine.of("ACC-1", "300.00", "USD", tax_percentage=Decimal("5")),
            VoucherLine.of("ACC-2", "200.00", "USD", tax_percentage=Decimal("5"),
                           tax_amount=usd("9.99")),
        )
        edited = update_line(make_voucher("500.00", lines=lines), 0, amount="250.00")
        assert edited.lines[0].tax_amount == usd("12.50")
        assert edited.lines[1].tax_amount == usd("9.99")

    def test_header_tax_from_tax_id(self, make_voucher, tax_rates):
        committed = commit(make_voucher(tax_id="VAT10"), tax_rates=tax_rates)
        assert committed.tax_percentage == Decimal("10")
        assert committed.tax_amount == usd("50.00")

    def test_header_tax_inclusive(self, make_voucher):
        voucher = make_voucher("105.00", lines=("105.00",), tax_percentage=Decimal("5"),
                               is_tax_inclusive=True)
        assert commit(voucher).tax_amount == usd("5.00")

    def test_header_cost_centers_copied(self, make_voucher, cost_centers):
        header = CostCenterSelection.of(1, 11)
        own = CostCenterSelection.of(1, 12)
        lines = (
            VoucherLine.of("ACC-1", "300.00", "USD"),
            VoucherLine.of("ACC-2", "200.00", "USD", cost_centers=own),
        )
        voucher = make_voucher(lines=lines, cost_centers=header, copy_cost_centers=True)
        committed = commit(voucher, directory=cost_centers)
        assert committed.lines[0].cost_centers == header
        assert committed.lines[1].cost_centers == own

    def test_header_change_reaches_inherited_lines(self, make_voucher, cost_centers):
        lines = (
            VoucherLine.of("ACC-1", "300.00", "USD"),
            VoucherLine.of("ACC-2", "200.00", "USD", cost_centers=CostCenterSelection.of(2)),
        )
        stored = commit(
            make_voucher(lines=lines, cost_centers=CostCenterSelection.of(1, 11),
                         copy_cost_centers=True),
            directory=cost_centers,
        )
        edited = stored.with_changes(cost_centers=CostCenterSelection.of(1, 12))
        committed = commit(edited, previous=stored, directory=cost_centers)
        assert committed.lines[0].cost_centers == CostCenterSelection.of(1, 12)
        assert committed.lines[1].cost_centers == CostCenterSelection.of(2)

    def test_line_set_explicitly_stops_inheriting(self, make_voucher, cost_centers):
        stored = commit(
            make_voucher("300.00", lines=("300.00",), cost_centers=CostCenterSelection.of(1, 11),
                         copy_cost_centers=True),
            directory=cost_centers,
        )
        pinned = update_line(stored, 0, cost_centers=CostCenterSelection.of(1, 11))
        edited = pinned.with_changes(cost_centers=CostCenterSelection.of(1, 12))
        committed = commit(edited, previous=stored, directory=cost_centers)
        assert committed.lines[0].cost_centers == CostCenterSelection.of(1, 11)

    def test_invalid_cost_center_chain(self, make_voucher, cost_centers):
        voucher = make_voucher(cost_centers=CostCenterSelection.of(2, 11))
        with pytest.raises(InvalidParentError):
            commit(voucher, directory=cost_centers)

    def test_gap_rejected_without_directory(self, make_voucher):
        voucher = make_voucher(cost_centers=CostCenterSelection(level1=1, level3=111))
        with pytest.raises(InvalidParentError):
            commit(voucher)

    def test_negative_line_rejected(self, make_voucher):
        with pytest.raises(ValidationError, match="negative amount"):
            commit(make_voucher("100.00", lines=("150.00", "-50.00")))

    def test_line_currency_mismatch(self, make_voucher):
        line = VoucherLine.of("ACC-1", "500.00", "EUR")
        with pytest.raises(CurrencyMismatchError):
            commit(make_voucher(lines=(line,)))

    def test_status_change_through_update_rejected(self, make_voucher):
        stored = make_voucher()
        with pytest.raises(ValidationError):
            commit(stored.with_changes(status=VoucherStatus.PENDING), previous=stored)

    def test_update_of_paid_voucher_frozen(self, make_voucher):
        stored = make_voucher(status=VoucherStatus.PAID)
        with pytest.raises(FrozenError):
            commit(stored.with_changes(description="edited"), previous=stored)


class TestRecomputeLine:
    def test_unchanged_line_kept(self):
        line = VoucherLine.of("ACC-1", "100.00", "USD", tax_percentage=Decimal("5"),
                              tax_amount=usd("4.00"))
        assert recompute_line(line, previous=line) is line

    def test_line_without_percentage_kept(self):
        line = VoucherLine.of("ACC-1", "100.00", "USD")
        assert recompute_line(line) is line


class TestEditGuard:
    @pytest.mark.parametrize("status", [VoucherStatus.PAID, VoucherStatus.REVERSED])
    def test_frozen(self, make_voucher, status):
        with pytest.raises(FrozenError):
            ensure_editable(make_voucher(status=status))

    @pytest.mark.parametrize("status", [VoucherStatus.REJECTED, VoucherStatus.CANCELLED])
    def test_closed(self, make_voucher, status):
        with pytest.raises(IllegalTransitionError):
            ensure_editable(make_voucher(status=status))

    def test_update_line_on_paid_voucher(self, make_voucher):
        with pytest.raises(FrozenError):
            update_line(make_voucher(status=VoucherStatus.PAID), 0, amount="1.00")

    def test_update_line_bad_index(self, make_voucher):
        with pytest.raises(ValidationError):
            update_line(make_voucher(), 5, amount="1.00")


class TestTransitions:
    """Voucher status workflow."""

    def test_submit_and_pay(self, make_voucher):
        pending = transition(make_voucher(), VoucherStatus.PENDING)
        assert transition(pending, VoucherStatus.PAID).status == VoucherStatus.PAID

    def test_submit_requires_balance(self, make_voucher):
        voucher = make_voucher("500.00", lines=("300.00", "199.99"))
        with pytest.raises(OutOfBalanceError):
            transition(voucher, VoucherStatus.PENDING)

    def test_draft_cannot_be_paid_directly(self, make_voucher):
        with pytest.raises(IllegalTransitionError):
            transition(make_voucher(), VoucherStatus.PAID)

    @pytest.mark.parametrize("target", [VoucherStatus.DRAFT, VoucherStatus.CANCELLED])
    def test_paid_is_frozen(self, make_voucher, target):
        with pytest.raises(FrozenError):
            transition(make_voucher(status=VoucherStatus.PAID), target)

    def test_reversed_not_reachable_by_transition(self, make_voucher):
        with pytest.raises(FrozenError):
            transition(make_voucher(status=VoucherStatus.PAID), VoucherStatus.REVERSED)


class TestReverse:
    """Reversal of a paid voucher."""

    def test_reverse_paid(self, make_voucher):
        paid = make_voucher(
            status=VoucherStatus.PAID,
            attachments=(Attachment(document_name="invoice.pdf"),),
        )
        result = reverse(paid, "PV-0002", "duplicate payment", date(2024, 3, 1))

        assert result.original.status == VoucherStatus.REVERSED
        assert result.original.total_amount == paid.total_amount
        assert result.reversal.voucher_no == "PV-0002"
        assert result.reversal.status == VoucherStatus.DRAFT
        assert result.reversal.reversal_of == "PV-0001"
        assert result.reversal.reversal_reason == "duplicate payment"
        assert result.reversal.lines == paid.lines
        assert result.reversal.attachments == ()
        assert result.reversal.transaction_date == date(2024, 3, 1)

    def test_only_paid_can_be_reversed(self, make_voucher):
        with pytest.raises(IllegalTransitionError):
            reverse(make_voucher(), "PV-0002", "typo")

    def test_reason_required(self, make_voucher):
        with pytest.raises(ValidationError):
            reverse(make_voucher(status=VoucherStatus.PAID), "PV-0002", "  ")

    def test_new_number_required(self, make_voucher):
        with pytest.raises(ValidationError):
            reverse(make_voucher(status=VoucherStatus.PAID), "PV-0001", "typo")
