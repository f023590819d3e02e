"""
Tests for the input/output VAT offset engine.
"""

from closing_engines.vat import VatOffsetEngine
from closing_kernel.domain.dtos import AccountBalance


def _bal(code, net):
    return AccountBalance(code, code, net)


def _pairs(result):
    return [(l.debit_account, l.credit_account, l.amount) for l in result.lines]


class TestVatOffset:

    def setup_method(self):
        self.engine = VatOffsetEngine()

    def test_output_exceeds_input(self):
        result = self.engine.compute(balances=[_bal("1331", 30_000), _bal("33311", -50_000)])
        assert result.offset == 30_000
        assert result.payable == 20_000
        assert result.carried_forward == 0
        assert _pairs(result) == [("33311", "1331", 30_000)]

    def test_input_exceeds_output(self):
        result = self.engine.compute(balances=[_bal("133", 80_000), _bal("3331", -50_000)])
        assert result.offset == 50_000
        assert result.payable == 0
        assert result.carried_forward == 30_000

    def test_no_output(self):
        result = self.engine.compute(balances=[_bal("133", 80_000)])
        assert result.offset == 0
        assert result.lines == ()
        assert result.has_balance

    def test_nothing(self):
        result = self.engine.compute(balances=[_bal("131", 80_000)])
        assert result.lines == ()
        assert not result.has_balance

    def test_sub_accounts_are_summed(self):
        result = self.engine.compute(balances=[
            _bal("1331", 10_000), _bal("1332", 5_000), _bal("3331", -100_000),
        ])
        assert result.vat_input == 15_000
        assert result.offset == 15_000
        assert _pairs(result) == [("3331", "1331", 10_000), ("3331", "1332", 5_000)]

    def test_each_sub_account_relieved_by_its_balance(self):
        balances = [
            _bal("1331", 10_000), _bal("1332", 25_000),
            _bal("33311", -20_000), _bal("33312", -30_000),
        ]
        result = self.engine.compute(balances=balances)
        assert result.offset == 35_000
        assert _pairs(result) == [
            ("33311", "1331", 10_000),
            ("33311", "1332", 10_000),
            ("33312", "1332", 15_000),
        ]
        moves: dict[str, int] = {}
        for l in result.lines:
            moves[l.debit_account] = moves.get(l.debit_account, 0) + l.amount
            moves[l.credit_account] = moves.get(l.credit_account, 0) - l.amount
        closing = {b.code: b.net_balance + moves.get(b.code, 0) for b in balances}
        assert closing == {"1331": 0, "1332": 0, "33311": 0, "33312": -15_000}
        assert "133" not in moves and "3331" not in moves
