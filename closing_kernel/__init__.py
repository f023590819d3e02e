"""
Closing Kernel

Domain values, typed errors, structured logging and the reference SQL
ledger used by the period-end closing & reallocation engine:
- Integer money and period-lock utilities
- Explicit chart-of-accounts classification
- Voucher / allocation-history persistence
"""

__version__ = "0.1.0"
