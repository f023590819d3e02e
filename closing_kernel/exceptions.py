"""
Typed exception hierarchy for the closing kernel.

Every error carries a class-level ``code`` (machine-readable, API-safe) and
stores its context as attributes, so callers catch by type and report by
field instead of parsing message strings.

    ClosingKernelError (base)
    |
    +-- ValidationError                 (recoverable, raised before any I/O)
    |   +-- EmptySelectionError
    |   +-- AmountOutOfBoundsError
    |   +-- MissingForeignAmountError
    |   +-- LockedPeriodError
    |   +-- EmptyVoucherError
    |   +-- InvalidLineAmountError
    |   +-- UnbalancedVoucherError
    |   +-- NothingToPostError
    |   +-- InvalidPeriodError
    |   +-- InvalidAccountError
    |   +-- DuplicateAllocationError
    |   +-- AllocationExceedsPaymentError
    |   +-- PaymentNotPersistedError
    |   +-- PeriodAlreadyClosedError
    |
    +-- LedgerError                     (raised at the ledger boundary)
        +-- TransientFetchError         (read failed; swallowed only by the
        |                                per-item duplicate check)
        +-- PostingFailure              (write rejected; fatal to the run)

Handling pattern:

    try:
        result = workflow.execute(preview)
    except LockedPeriodError as e:
        notify(f"Period locked until {e.locked_until}")
    except ValidationError as e:
        notify(e.code, str(e))          # stay on the current step
    except PostingFailure as e:
        notify(e.code, e.reason)        # preview kept, operator resubmits
"""


class ClosingKernelError(Exception):
    """
    Base exception for all closing kernel errors.

    All subclasses define a ``code`` class attribute.
    """

    code: str = "CLOSING_KERNEL_ERROR"


# Validation errors


class ValidationError(ClosingKernelError):
    """Base exception for locally recoverable input errors."""

    code: str = "VALIDATION_ERROR"


class EmptySelectionError(ValidationError):
    """Nothing was selected for posting."""

    code: str = "EMPTY_SELECTION"

    def __init__(self, workflow: str):
        self.workflow = workflow
        super().__init__(f"{workflow}: select at least one item to process")


class AmountOutOfBoundsError(ValidationError):
    """An edited amount falls outside its permitted range."""

    code: str = "AMOUNT_OUT_OF_BOUNDS"

    def __init__(self, target_id: str, amount: int, lower: int, upper: int):
        self.target_id = target_id
        self.amount = amount
        self.lower = lower
        self.upper = upper
        super().__init__(
            f"Amount {amount} for {target_id} is outside [{lower}, {upper}]"
        )


class MissingForeignAmountError(ValidationError):
    """Foreign-currency face amounts were not entered for some accounts."""

    code: str = "MISSING_FOREIGN_AMOUNT"

    def __init__(self, account_codes: list[str]):
        self.account_codes = account_codes
        super().__init__(
            "Enter the foreign-currency amount for accounts: "
            + ", ".join(account_codes)
        )


class LockedPeriodError(ValidationError):
    """Posting date is on or before the period-lock cutoff."""

    code: str = "LOCKED_PERIOD"

    def __init__(self, post_date: str, locked_until: str, operation: str = "post"):
        self.post_date = post_date
        self.locked_until = locked_until
        self.operation = operation
        super().__init__(
            f"Period is locked until {locked_until}; cannot {operation} "
            f"on {post_date}"
        )


class EmptyVoucherError(ValidationError):
    """Voucher has no lines."""

    code: str = "EMPTY_VOUCHER"

    def __init__(self, doc_no: str):
        self.doc_no = doc_no
        super().__init__(f"Voucher {doc_no} has no lines")


class InvalidLineAmountError(ValidationError):
    """Voucher line amount is zero or negative."""

    code: str = "INVALID_LINE_AMOUNT"

    def __init__(self, doc_no: str, line_index: int, amount: int):
        self.doc_no = doc_no
        self.line_index = line_index
        self.amount = amount
        super().__init__(
            f"Voucher {doc_no} line {line_index}: amount must be positive, got {amount}"
        )


class UnbalancedVoucherError(ValidationError):
    """Voucher total does not match its lines, or debits != credits."""

    code: str = "UNBALANCED_VOUCHER"

    def __init__(self, doc_no: str, debits: int, credits: int):
        self.doc_no = doc_no
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Voucher {doc_no} is unbalanced: debits={debits}, credits={credits}"
        )


class NothingToPostError(ValidationError):
    """The computed adjustment set is empty."""

    code: str = "NOTHING_TO_POST"

    def __init__(self, workflow: str):
        self.workflow = workflow
        super().__init__(f"{workflow}: no differences to post")


class InvalidPeriodError(ValidationError):
    """Period key or date could not be parsed."""

    code: str = "INVALID_PERIOD"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid period or date: {value!r} (expected YYYY-MM)")


class InvalidAccountError(ValidationError):
    """Account is not permitted for the requested operation."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, account_code: str, reason: str):
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Account {account_code} is invalid: {reason}")


class DuplicateAllocationError(ValidationError):
    """Item has already been allocated for the period."""

    code: str = "DUPLICATE_ALLOCATION"

    def __init__(self, period: str, item_id: str):
        self.period = period
        self.item_id = item_id
        super().__init__(f"Item {item_id} is already allocated for period {period}")


class AllocationExceedsPaymentError(ValidationError):
    """Sum of allocated amounts exceeds the payment total."""

    code: str = "ALLOCATION_EXCEEDS_PAYMENT"

    def __init__(self, allocated: int, payment_total: int):
        self.allocated = allocated
        self.payment_total = payment_total
        super().__init__(
            f"Allocated total {allocated} exceeds payment amount {payment_total}"
        )


class PaymentNotPersistedError(ValidationError):
    """Reversal requested for a payment that has not been saved."""

    code: str = "PAYMENT_NOT_PERSISTED"

    def __init__(self):
        super().__init__("Save the payment before reversing its allocations")


class PeriodAlreadyClosedError(ValidationError):
    """A closing voucher already exists for the period."""

    code: str = "PERIOD_ALREADY_CLOSED"

    def __init__(self, period: str, doc_no: str):
        self.period = period
        self.doc_no = doc_no
        super().__init__(f"Period {period} is already closed by voucher {doc_no}")


# Ledger boundary errors


class LedgerError(ClosingKernelError):
    """Base exception for failures reported by the ledger."""

    code: str = "LEDGER_ERROR"


class TransientFetchError(LedgerError):
    """A ledger read failed."""

    code: str = "TRANSIENT_FETCH_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Ledger read {operation} failed: {reason}")


class PostingFailure(LedgerError):
    """The ledger rejected a voucher or allocation submission."""

    code: str = "POSTING_FAILURE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Ledger rejected {operation}: {reason}")
