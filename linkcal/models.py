"""
Tool: Linkcal Models
Purpose: Data structures for linked accounts, meetings, and sync runs

Usage:
    from linkcal.models import LinkedAccount, NormalizedMeeting, Meeting, Provider

NormalizedMeeting is the provider-agnostic shape produced by every adapter.
Meeting is its persisted counterpart, scoped to one LinkedAccount.
"""

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from linkcal.errors import UnsupportedProviderError


# Fields compared by the diff engine and written on update
SYNC_FIELDS = (
    "name",
    "start_date",
    "end_date",
    "attendees",
    "location",
    "link",
    "message",
    "status",
)

# Placeholders used when a provider omits an optional field
DEFAULT_NAME = "No title"
DEFAULT_LOCATION = "No location"
DEFAULT_LINK = "No link"
DEFAULT_MESSAGE = "No description"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Provider(str, Enum):
    """Calendar provider identifiers."""

    GOOGLE = "google"
    MICROSOFT = "microsoft"

    @classmethod
    def from_string(cls, value: "str | Provider") -> "Provider":
        """Parse a provider name, accepting the OAuth aliases for Microsoft."""
        if isinstance(value, Provider):
            return value
        lowered = (value or "").strip().lower()
        if lowered in ("azure-ad", "azure", "outlook"):
            return cls.MICROSOFT
        try:
            return cls(lowered)
        except ValueError:
            raise UnsupportedProviderError(value) from None


@dataclass
class LinkedAccount:
    """
    A user's OAuth connection to one external calendar mailbox.

    The refresh token rotates on every refresh; last_synced is stamped by
    the sync applier after each completed pass.
    """

    id: str
    user_id: str
    provider: Provider
    email: str
    refresh_token: str

    display_name: str | None = None
    color: str | None = None
    last_synced: datetime | None = None

    # Push-notification subscription
    webhook_channel_id: str | None = None
    webhook_resource_id: str | None = None
    webhook_expiration: datetime | None = None

    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        self.provider = Provider.from_string(self.provider)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict (excludes the refresh token)."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "provider": self.provider.value,
            "email": self.email,
            "display_name": self.display_name,
            "color": self.color,
            "last_synced": self.last_synced.isoformat() if self.last_synced else None,
            "webhook_channel_id": self.webhook_channel_id,
            "webhook_resource_id": self.webhook_resource_id,
            "webhook_expiration": (
                self.webhook_expiration.isoformat() if self.webhook_expiration else None
            ),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LinkedAccount":
        """Create from dict (e.g. a sqlite row)."""
        data = dict(data)
        for time_field in ["last_synced", "webhook_expiration", "created_at"]:
            if isinstance(data.get(time_field), str):
                data[time_field] = datetime.fromisoformat(data[time_field])
        if data.get("created_at") is None:
            data.pop("created_at", None)
        return cls(**data)


@dataclass
class NormalizedMeeting:
    """
    Provider-agnostic calendar event, produced fresh on every fetch.

    external_event_id is only unique within one provider's event space,
    so every lookup is scoped by linked_account_id as well.
    """

    external_event_id: str
    provider: Provider
    linked_account_id: str
    name: str = DEFAULT_NAME
    start_date: str = ""
    end_date: str = ""
    attendees: list[str] = field(default_factory=list)
    location: str = DEFAULT_LOCATION
    link: str = DEFAULT_LINK
    message: str = DEFAULT_MESSAGE
    status: str = "confirmed"

    def __post_init__(self):
        self.provider = Provider.from_string(self.provider)
        self.external_event_id = str(self.external_event_id)

    def sync_fields(self) -> dict[str, Any]:
        """The fields the diff engine compares."""
        return {name: getattr(self, name) for name in SYNC_FIELDS}

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["provider"] = self.provider.value
        return d


@dataclass
class Meeting:
    """
    Persisted meeting, owned by exactly one LinkedAccount.

    (external_event_id, provider, linked_account_id) is unique in the store.
    """

    id: str
    user_id: str
    linked_account_id: str
    external_event_id: str
    provider: Provider
    name: str = DEFAULT_NAME
    start_date: str = ""
    end_date: str = ""
    attendees: list[str] = field(default_factory=list)
    location: str = DEFAULT_LOCATION
    link: str = DEFAULT_LINK
    message: str = DEFAULT_MESSAGE
    status: str = "confirmed"
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        self.provider = Provider.from_string(self.provider)

    def sync_fields(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in SYNC_FIELDS}

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["provider"] = self.provider.value
        d["created_at"] = self.created_at.isoformat()
        d["updated_at"] = self.updated_at.isoformat()
        return d

    @classmethod
    def from_row(cls, row: Any) -> "Meeting":
        """Create from a sqlite3.Row of the meetings table."""
        data = dict(row)
        attendees = data.get("attendees")
        if isinstance(attendees, str):
            data["attendees"] = json.loads(attendees) if attendees else []
        elif attendees is None:
            data["attendees"] = []
        for time_field in ["created_at", "updated_at"]:
            if isinstance(data.get(time_field), str):
                data[time_field] = datetime.fromisoformat(data[time_field])
        return cls(**data)

    @classmethod
    def from_normalized(
        cls,
        meeting: NormalizedMeeting,
        user_id: str,
        linked_account_id: str | None = None,
    ) -> "Meeting":
        """Row for a fetched meeting, owned by linked_account_id when given."""
        return cls(
            id=cls.generate_id(),
            user_id=user_id,
            linked_account_id=linked_account_id or meeting.linked_account_id,
            external_event_id=meeting.external_event_id,
            provider=meeting.provider,
            **meeting.sync_fields(),
        )

    @staticmethod
    def generate_id() -> str:
        return str(uuid.uuid4())


# =============================================================================
# Sync run bookkeeping
# =============================================================================

@dataclass
class SyncPlan:
    """Operations needed to reconcile stored state with a fresh fetch."""

    to_insert: list[NormalizedMeeting] = field(default_factory=list)
    to_update: list[NormalizedMeeting] = field(default_factory=list)
    to_delete: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_insert or self.to_update or self.to_delete)

    def counts(self) -> dict[str, int]:
        return {
            "insert": len(self.to_insert),
            "update": len(self.to_update),
            "delete": len(self.to_delete),
        }


@dataclass
class ApplyStats:
    """Per-category success/failure counts for one apply pass."""

    inserted: int = 0
    insert_failed: int = 0
    updated: int = 0
    update_failed: int = 0
    deleted: int = 0
    delete_failed: int = 0

    @property
    def failed(self) -> int:
        return self.insert_failed + self.update_failed + self.delete_failed

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class SyncState(str, Enum):
    """Lifecycle of a single sync attempt."""

    PENDING = "pending"
    FETCHING = "fetching"
    VALIDATING = "validating"
    DIFFING = "diffing"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"


# Legal transitions; FAILED is only reachable while fetching
SYNC_TRANSITIONS: dict[SyncState, tuple[SyncState, ...]] = {
    SyncState.PENDING: (SyncState.FETCHING,),
    SyncState.FETCHING: (SyncState.VALIDATING, SyncState.FAILED),
    SyncState.VALIDATING: (SyncState.DIFFING,),
    SyncState.DIFFING: (SyncState.APPLYING,),
    SyncState.APPLYING: (SyncState.DONE,),
    SyncState.DONE: (),
    SyncState.FAILED: (),
}


@dataclass
class SyncResult:
    """Outcome of one account sync, including the state history."""

    account_id: str
    state: SyncState = SyncState.PENDING
    history: list[SyncState] = field(default_factory=lambda: [SyncState.PENDING])
    fetched: int = 0
    kept: int = 0
    plan: SyncPlan | None = None
    stats: ApplyStats | None = None
    error: str | None = None
    forwarded: dict[str, Any] | None = None

    def transition(self, new_state: SyncState) -> None:
        if new_state not in SYNC_TRANSITIONS[self.state]:
            raise ValueError(
                f"Illegal sync transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)

    def fail(self, error: str) -> None:
        self.transition(SyncState.FAILED)
        self.error = error

    @property
    def success(self) -> bool:
        return self.state == SyncState.DONE

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "account_id": self.account_id,
            "state": self.state.value,
            "history": [s.value for s in self.history],
            "fetched": self.fetched,
            "kept": self.kept,
            "plan": self.plan.counts() if self.plan else None,
            "stats": self.stats.to_dict() if self.stats else None,
            "error": self.error,
            "forwarded": self.forwarded,
        }
