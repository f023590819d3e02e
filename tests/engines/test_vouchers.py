"""
Tests for voucher assembly and document numbering.
"""

from datetime import date

import pytest

from closing_engines.vouchers import VoucherBuilder, format_doc_no
from closing_kernel.domain.dtos import VoucherLine, VoucherType
from closing_kernel.domain.periods import Period
from closing_kernel.exceptions import EmptyVoucherError, InvalidLineAmountError

PERIOD = Period.parse("2024-05")


def _line(amount, debit="642", credit="242"):
    return VoucherLine(description="x", debit_account=debit, credit_account=credit, amount=amount)


class TestDocNumbers:

    @pytest.mark.parametrize("voucher_type,expected", [
        (VoucherType.ALLOCATION, "PB-2024.05"),
        (VoucherType.REVALUATION, "DG-2024.05"),
        (VoucherType.CLOSING, "KC-2024.05"),
        (VoucherType.REALLOCATION, "PBL-2024.05"),
    ])
    def test_default_prefixes(self, voucher_type, expected):
        assert VoucherBuilder().doc_no(voucher_type, PERIOD) == expected

    def test_prefix_override(self):
        builder = VoucherBuilder({VoucherType.CLOSING: "CLS"})
        assert builder.doc_no(VoucherType.CLOSING, PERIOD) == "CLS-2024.05"
        assert builder.doc_no(VoucherType.ALLOCATION, PERIOD) == "PB-2024.05"

    def test_suffix(self):
        assert format_doc_no("KC", PERIOD, "-R") == "KC-2024.05-R"


class TestBuild:

    def setup_method(self):
        self.builder = VoucherBuilder()

    def test_total_is_sum_of_lines(self):
        voucher = self.builder.build(
            voucher_type=VoucherType.ALLOCATION,
            period=PERIOD,
            lines=[_line(100_000), _line(50_000)],
            description="Allocation",
        )
        assert voucher.total_amount == 150_000
        assert voucher.is_balanced
        assert voucher.doc_no == "PB-2024.05"

    def test_dates_default_to_period_end(self):
        voucher = self.builder.build(
            voucher_type=VoucherType.CLOSING, period=PERIOD, lines=[_line(1)], description="c"
        )
        assert voucher.post_date == date(2024, 5, 31)
        assert voucher.doc_date == date(2024, 5, 31)
        assert voucher.period_key == "2024-05"

    def test_explicit_dates_and_doc_no(self):
        voucher = self.builder.build(
            voucher_type=VoucherType.REVALUATION,
            period=PERIOD,
            lines=[_line(1)],
            description="r",
            post_date=date(2024, 5, 20),
            doc_date=date(2024, 5, 21),
            doc_no="DG-SPECIAL",
        )
        assert voucher.post_date == date(2024, 5, 20)
        assert voucher.doc_date == date(2024, 5, 21)
        assert voucher.doc_no == "DG-SPECIAL"

    def test_empty_lines_rejected(self):
        with pytest.raises(EmptyVoucherError):
            self.builder.build(
                voucher_type=VoucherType.CLOSING, period=PERIOD, lines=[], description="c"
            )

    @pytest.mark.parametrize("amount", [0, -1])
    def test_non_positive_line_rejected(self, amount):
        with pytest.raises(InvalidLineAmountError) as exc_info:
            self.builder.build(
                voucher_type=VoucherType.CLOSING,
                period=PERIOD,
                lines=[_line(5), _line(amount)],
                description="c",
            )
        assert exc_info.value.line_index == 1

    def test_movements_net_to_zero(self):
        voucher = self.builder.build(
            voucher_type=VoucherType.CLOSING,
            period=PERIOD,
            lines=[_line(500_000, "511", "911"), _line(300_000, "911", "642")],
            description="c",
        )
        moves = voucher.account_movements()
        assert moves == {"511": 500_000, "911": -200_000, "642": -300_000}
        assert sum(moves.values()) == 0
