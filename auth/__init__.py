"""
auth/ -- Session lifecycle for the payslip client: device storage, biometric
unlock and the authentication state machine.

Layer rule: auth/ imports only core/ + third-party libraries.
It does NOT import from notifications/, receipts/ or main.py.
notifications/ and receipts/ import from auth/, not the other way around.
"""
