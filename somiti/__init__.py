"""
Somiti Ledger

Back-office ledger for a micro-finance cooperative: member registration,
loan issuance and installment collection, DPS deposit schemes, and the
installment schedule and arrears engine that drives the collection views.
"""

__version__ = "1.0.0"
