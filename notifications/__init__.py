"""notifications/ -- Push notification handling for the payslip client.

Layer rule: notifications/ imports from core/ and auth/.
It does NOT import from receipts/ or main.py.
"""
