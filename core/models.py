"""
core/models.py -- Domain dataclasses for the payslip client.

Pattern: Data class (pure data container, minimal logic). The from_api()
constructors are the Data Mappers between the backend's JSON shape and the
domain shape; they raise DecodingError on any schema mismatch so callers never
see a KeyError or TypeError from a bad response body.
"""

from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass
from typing import Any

from core.errors import DecodingError

# ---------------------------------------------------------------------------
# Currency parsing
# ---------------------------------------------------------------------------

# Currency symbol, thousands separators and whitespace.
_CURRENCY_JUNK_RE = re.compile(r"[$,\s]")


def parse_currency(value: str) -> float:
    """Parse a formatted amount like "$12,345.60" into a float.

    Sanitize-then-parse: strips "$", "," and whitespace, then parses what is
    left. Anything unparsable (empty string, "N/A", stray letters) yields 0.0
    rather than an error -- the backend occasionally sends placeholders and a
    zero amount is the documented fallback. Payroll amounts are never
    negative, so "nan", "inf" and negative values fall back to 0.0 too.
    """
    sanitized = _CURRENCY_JUNK_RE.sub("", value)
    try:
        amount = float(sanitized)
    except ValueError:
        return 0.0
    if not math.isfinite(amount) or amount < 0:
        return 0.0
    return amount


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _require_int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    # bool is an int subclass; the backend never sends booleans for ids.
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodingError(f"field {key!r} must be an integer, got {type(value).__name__}")
    return value


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise DecodingError(f"field {key!r} must be a string, got {type(value).__name__}")
    return value


def _require_amount(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if isinstance(value, str):
        return parse_currency(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise DecodingError(f"field {key!r} must be a formatted amount, got {type(value).__name__}")


def _require_mapping(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise DecodingError(f"{what} must be a JSON object, got {type(data).__name__}")
    return data


# ---------------------------------------------------------------------------
# Employee
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Employee:
    """The signed-in employee's profile.

    Immutable once loaded: a new login produces a new Employee, nothing mutates
    the one held by the session. category is the payroll category ("TIPO") used
    by the receipts endpoint.
    """

    id: int
    first_name: str
    paternal_surname: str
    maternal_surname: str
    rfc: str
    curp: str
    category: int
    email: str

    # Backend key -> dataclass field
    _WIRE_KEYS = {
        "EMPLEADO": "id",
        "NOMBRE": "first_name",
        "APPAT": "paternal_surname",
        "APMAT": "maternal_surname",
        "RFC": "rfc",
        "CURP": "curp",
        "TIPO": "category",
        "EMAIL": "email",
    }

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.paternal_surname} {self.maternal_surname}"

    @property
    def initials(self) -> str:
        if not self.first_name or not self.paternal_surname:
            return "?"
        return f"{self.first_name[0]}{self.paternal_surname[0]}".upper()

    @classmethod
    def from_api(cls, data: Any) -> Employee:
        data = _require_mapping(data, "empleado")
        return cls(
            id=_require_int(data, "EMPLEADO"),
            first_name=_require_str(data, "NOMBRE"),
            paternal_surname=_require_str(data, "APPAT"),
            maternal_surname=_require_str(data, "APMAT"),
            rfc=_require_str(data, "RFC"),
            curp=_require_str(data, "CURP"),
            category=_require_int(data, "TIPO"),
            email=_require_str(data, "EMAIL"),
        )

    def to_api(self) -> dict[str, Any]:
        """Inverse of from_api(). Used for the durable profile snapshot."""
        fields = asdict(self)
        return {wire: fields[attr] for wire, attr in self._WIRE_KEYS.items()}


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoginResult:
    """Session payload returned by a successful network login."""

    token: str
    user: Employee

    @classmethod
    def from_api(cls, data: Any) -> LoginResult:
        data = _require_mapping(data, "login response")
        token = _require_str(data, "token")
        if not token:
            raise DecodingError("field 'token' is empty")
        return cls(token=token, user=Employee.from_api(data.get("empleado")))


# ---------------------------------------------------------------------------
# Receipts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Receipt:
    """One payroll period for one employee.

    Amounts are reported by the server. net is NOT recomputed from
    gross + benefits - deductions; a mismatch is the server's business.
    """

    employee: int
    period: int  # YYYYNN, NN = pay fortnight
    payment_date: str
    gross: float  # percepciones
    benefits: float  # prestaciones
    deductions: float  # deducciones
    net: float  # neto

    @property
    def period_label(self) -> str:
        digits = str(self.period)
        if len(digits) < 6:
            return f"Periodo: {self.period}"
        return f"Periodo {digits[-2:]}"

    @classmethod
    def from_api(cls, data: Any) -> Receipt:
        data = _require_mapping(data, "recibo")
        return cls(
            employee=_require_int(data, "empleado"),
            period=_require_int(data, "periodo"),
            payment_date=_require_str(data, "fechaPago"),
            gross=_require_amount(data, "percepciones"),
            benefits=_require_amount(data, "prestaciones"),
            deductions=_require_amount(data, "deducciones"),
            net=_require_amount(data, "neto"),
        )


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NavigationTarget:
    """A receipt the presentation layer should open.

    All three fields are required together; there is no partial target.
    """

    employee_id: int
    period: int
    receipt_type: int
