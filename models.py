import json
import uuid
from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from pydantic.dataclasses import dataclass

from constants import PROVISIONAL_PREFIX
from utils.date_utils import format_timestamp, parse_timestamp, utc_now

CENTS = Decimal("0.01")
# Smallest timestamp increment the server API preserves
MUTATION_STEP = timedelta(milliseconds=1)


class Category(str, Enum):
    FOOD = "food"
    TRANSPORT = "transport"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    UTILITIES = "utilities"
    HEALTH = "health"
    TRAVEL = "travel"
    EDUCATION = "education"
    OTHER = "other"


@dataclass(frozen=True)
class Provisional:
    """Identity generated on the device before the server has assigned one."""

    token: str

    @property
    def key(self) -> str:
        return self.token


@dataclass(frozen=True)
class Assigned:
    """Identity assigned by the server. Permanent once known."""

    server_id: str

    @property
    def key(self) -> str:
        return self.server_id


ExpenseId = Provisional | Assigned


def new_provisional_id() -> Provisional:
    return Provisional(f"{PROVISIONAL_PREFIX}{uuid.uuid4().hex}")


def quantize_amount(amount: Decimal | float | str) -> Decimal:
    """Round an amount to cents, half up."""
    return Decimal(str(amount)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Expense:
    """Represents an expense record together with its sync metadata."""

    id: ExpenseId
    amount: Decimal
    category: Category
    description: str
    date: date
    created_at: datetime
    updated_at: datetime
    synced: bool = False
    deleted: bool = False
    # Provisional token this record was created under, kept after the server assigns an id
    origin: str | None = None

    @classmethod
    def create(
        cls,
        amount: Decimal,
        category: Category,
        description: str,
        spent_on: date,
        now: datetime | None = None,
    ) -> "Expense":
        """Create a new, unsynced expense with a provisional identity."""
        timestamp = now or utc_now()
        identity = new_provisional_id()
        return cls(
            id=identity,
            amount=amount,
            category=category,
            description=description,
            date=spent_on,
            created_at=timestamp,
            updated_at=timestamp,
            synced=False,
            deleted=False,
            origin=identity.token,
        )

    @property
    def key(self) -> str:
        """Normalized identity used to index the replica and the merge."""
        return self.id.key

    @property
    def is_provisional(self) -> bool:
        return isinstance(self.id, Provisional)

    @property
    def server_id(self) -> str | None:
        return self.id.server_id if isinstance(self.id, Assigned) else None

    @property
    def is_visible(self) -> bool:
        return not self.deleted

    def touch(self, now: datetime | None = None, **changes: Any) -> "Expense":
        """Return a locally mutated copy: bumped updated_at and synced=False.

        updated_at always moves forward, even if the device clock does not, so
        a mutation never ties with the version it replaces.
        """
        timestamp = now or utc_now()
        if timestamp <= self.updated_at:
            timestamp = self.updated_at + MUTATION_STEP
        return replace(self, **changes, updated_at=timestamp, synced=False)

    def as_synced(self) -> "Expense":
        return self if self.synced else replace(self, synced=True)

    def with_server_id(self, server_id: str) -> "Expense":
        return replace(self, id=Assigned(server_id))


# Local persistence document


def to_document(expense: Expense) -> dict[str, Any]:
    if isinstance(expense.id, Assigned):
        identity = {"kind": "assigned", "value": expense.id.server_id}
    else:
        identity = {"kind": "provisional", "value": expense.id.token}
    return {
        "id": identity,
        "origin": expense.origin,
        "amount": str(expense.amount),
        "category": expense.category.value,
        "description": expense.description,
        "date": expense.date.isoformat(),
        "createdAt": format_timestamp(expense.created_at),
        "updatedAt": format_timestamp(expense.updated_at),
        "synced": expense.synced,
        "deleted": expense.deleted,
    }


def from_document(data: dict[str, Any]) -> Expense:
    identity = data["id"]
    if identity["kind"] == "assigned":
        expense_id: ExpenseId = Assigned(identity["value"])
    elif identity["kind"] == "provisional":
        expense_id = Provisional(identity["value"])
    else:
        raise ValueError(f"Unknown identity kind: {identity['kind']}")

    return Expense(
        id=expense_id,
        origin=data.get("origin"),
        amount=Decimal(data["amount"]),
        category=Category(data["category"]),
        description=data["description"],
        date=date.fromisoformat(data["date"]),
        created_at=parse_timestamp(data["createdAt"]),
        updated_at=parse_timestamp(data["updatedAt"]),
        synced=data.get("synced", False),
        deleted=data.get("deleted", False),
    )


def dump_document(expenses: list[Expense]) -> str:
    return json.dumps([to_document(expense) for expense in expenses])


def load_document(raw: str) -> list[Expense]:
    """Parse a persisted replica document.

    Raises:
        ValueError: If the document is not a list of well-formed expenses
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Replica document is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ValueError("Replica document must be a list of expenses")

    try:
        return [from_document(item) for item in data]
    except (KeyError, TypeError, AttributeError, ArithmeticError) as e:
        raise ValueError(f"Malformed expense in replica document: {e!r}") from e


# Server wire format, field names as the REST API uses them


def to_wire(expense: Expense) -> dict[str, Any]:
    payload = {
        "amount": float(expense.amount),
        "category": expense.category.value,
        "description": expense.description,
        "date": expense.date.isoformat(),
        "createdAt": format_timestamp(expense.created_at),
        "updatedAt": format_timestamp(expense.updated_at),
        "deleted": expense.deleted,
    }
    if expense.server_id is not None:
        payload["_id"] = expense.server_id
    if expense.origin is not None:
        payload["localId"] = expense.origin
    return payload


def from_wire(data: dict[str, Any]) -> Expense:
    """Build an expense from a server payload. Server records are synced by definition."""
    server_id = data.get("_id")
    if not server_id:
        raise ValueError("Server expense is missing '_id'")

    # The server may send a full datetime for the expense date
    raw_date = str(data["date"])[:10]
    updated_at = parse_timestamp(data["updatedAt"])
    created_at = parse_timestamp(data["createdAt"]) if data.get("createdAt") else updated_at

    return Expense(
        id=Assigned(str(server_id)),
        origin=data.get("localId"),
        amount=quantize_amount(data["amount"]),
        category=Category(data["category"]),
        description=data["description"],
        date=date.fromisoformat(raw_date),
        created_at=created_at,
        updated_at=updated_at,
        synced=True,
        deleted=data.get("deleted", False),
    )
