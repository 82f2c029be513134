"""
receipts/service.py -- Year-filtered receipt list, CSV export and PDF download.

Every call fetches fresh; there is no local cache. All calls require an
AUTHENTICATED session -- a stored-but-locked session is not enough to read
payroll data.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from pathlib import Path

from auth.session import SessionManager
from core.client import PayrollClient
from core.errors import ValidationError
from core.models import NavigationTarget, Receipt

logger = logging.getLogger("payslip.receipts")


@dataclass(frozen=True)
class ReceiptTotals:
    count: int
    gross: float
    benefits: float
    deductions: float
    net: float


def summarize(receipts: list[Receipt]) -> ReceiptTotals:
    return ReceiptTotals(
        count=len(receipts),
        gross=sum(r.gross for r in receipts),
        benefits=sum(r.benefits for r in receipts),
        deductions=sum(r.deductions for r in receipts),
        net=sum(r.net for r in receipts),
    )


def pdf_filename(target: NavigationTarget) -> str:
    return f"recibo_{target.employee_id}_{target.period}_{target.receipt_type}.pdf"


CSV_HEADERS = ["Periodo", "Fecha de Pago", "Percepciones", "Prestaciones", "Deducciones", "Neto"]


def to_csv(receipts: list[Receipt]) -> str:
    """Render receipts as CSV text, one row per receipt under a Spanish header.

    Amounts are written unformatted so spreadsheets read them as numbers.
    """
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_HEADERS)
    for r in receipts:
        writer.writerow([r.period, r.payment_date, r.gross, r.benefits, r.deductions, r.net])
    return buf.getvalue()


class ReceiptService:
    def __init__(self, client: PayrollClient, session: SessionManager) -> None:
        self._client = client
        self._session = session

    def _auth(self) -> str:
        token = self._session.token
        if not self._session.is_authenticated or token is None:
            raise ValidationError("Sign in to view your receipts")
        return token

    def list_receipts(self, year: str) -> list[Receipt]:
        """Receipts paid in `year`, newest period first.

        The payment date is a display string (e.g. "15/01/2025"), so the year
        match is a substring test, same as the backend's own web client.
        """
        token = self._auth()
        user = self._session.user
        receipts = self._client.fetch_receipts(user.id, user.category, token)
        matching = [r for r in receipts if year in r.payment_date]
        matching.sort(key=lambda r: r.period, reverse=True)
        logger.info("Loaded %d receipts for %s (%d total)", len(matching), year, len(receipts))
        return matching

    def download_pdf(self, target: NavigationTarget, directory: Path) -> Path:
        """Fetch one receipt PDF and write it under `directory` for sharing."""
        token = self._auth()
        data = self._client.fetch_receipt_pdf(target.employee_id, target.period, target.receipt_type, token)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / pdf_filename(target)
        path.write_bytes(data)
        logger.info("Saved receipt PDF to %s (%d bytes)", path, len(data))
        return path
