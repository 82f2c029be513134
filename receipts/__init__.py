"""receipts/ -- Receipt listing and PDF retrieval for the signed-in employee.

Layer rule: receipts/ imports from core/ and auth/ only.
"""
