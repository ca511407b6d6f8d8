"""
Finance application.

Issues invoices, receipts, payment vouchers and statements of payment against
bank and petty cash accounts, and keeps account balances and invoice payment
status consistent as documents move through their lifecycle.
"""
