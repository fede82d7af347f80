"""Append-only audit log — the relayer's record of every relay transition.

Every state change in a relay produces an event record that is appended
to the log. Events are immutable once written and hash-verified on reload.

Payloads are restricted to public or relayer-local data: submission id,
commitment, transaction hash, block reference, failure reason, deadline.
Transfer record fields, signatures, and key material never enter the log;
``append`` rejects payload keys outside the allowed set.
"""

from __future__ import annotations

import enum
import hashlib
import json
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


class RelayEventKind(str, enum.Enum):
    """Classification of relay events."""
    SUBMISSION_RECEIVED = "submission_received"
    SUBMISSION_AUTHENTICATED = "submission_authenticated"
    COMMITMENT_SUBMITTED = "commitment_submitted"
    SUBMISSION_CONFIRMED = "submission_confirmed"
    SUBMISSION_FAILED = "submission_failed"
    RECEIPT_MISMATCH = "receipt_mismatch"


ALLOWED_PAYLOAD_KEYS = frozenset({
    "submission_id",
    "state",
    "commitment",
    "tx_hash",
    "block_reference",
    "emitted_commitment",
    "reason",
    "timeout",
    "detail",
})


def _canonical_hash(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    actor_id: str,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "timestamp_utc": timestamp_utc,
            "actor_id": actor_id,
            "payload": payload,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable event in the audit log.

    The event_hash is computed at creation time over the canonical JSON
    form and re-checked when the log is reloaded.
    """
    event_id: str
    event_kind: RelayEventKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: RelayEventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        """Create a new event record with computed hash."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.strftime("%Y-%m-%dT%H:%M:%SZ")
        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            actor_id=actor_id,
            payload=payload,
            event_hash=_canonical_hash(
                event_id, event_kind.value, ts_str, actor_id, payload,
            ),
        )


class EventLog:
    """Append-only event log with optional JSONL persistence.

    Safe to share between concurrent relays: appends are serialised.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._storage_path = storage_path
        self._event_ids: set[str] = set()
        self._lock = threading.Lock()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, event: EventRecord) -> None:
        """Append an event to the log.

        Raises ValueError on a duplicate event_id (replay protection) or
        on payload keys outside ALLOWED_PAYLOAD_KEYS.
        """
        unexpected = set(event.payload) - ALLOWED_PAYLOAD_KEYS
        if unexpected:
            raise ValueError(
                f"Payload keys not permitted in audit log: {sorted(unexpected)}"
            )
        with self._lock:
            if event.event_id in self._event_ids:
                raise ValueError(f"Duplicate event ID: {event.event_id}")
            self._events.append(event)
            self._event_ids.add(event.event_id)
            if self._storage_path:
                self._append_to_file(event)

    def record(
        self,
        event_id: str,
        event_kind: RelayEventKind,
        actor_id: str,
        payload: dict[str, Any],
    ) -> EventRecord:
        """Create and append an event in one step."""
        event = EventRecord.create(event_id, event_kind, actor_id, payload)
        self.append(event)
        return event

    def events(self, kind: Optional[RelayEventKind] = None) -> list[EventRecord]:
        """Return events, optionally filtered by kind."""
        with self._lock:
            events = list(self._events)
        if kind is None:
            return events
        return [e for e in events if e.event_kind == kind]

    def events_for(self, submission_id: str) -> list[EventRecord]:
        """Return the events of a single relay, in order."""
        return [
            e for e in self.events()
            if e.payload.get("submission_id") == submission_id
        ]

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def _append_to_file(self, event: EventRecord) -> None:
        """Append a single event to the JSONL file."""
        record = {
            "event_id": event.event_id,
            "event_kind": event.event_kind.value,
            "timestamp_utc": event.timestamp_utc,
            "actor_id": event.actor_id,
            "payload": event.payload,
            "event_hash": event.event_hash,
        }
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Load events from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch) and
        duplicate event IDs.
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)

                event_id = data["event_id"]
                if event_id in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event_id}"
                    )

                expected_hash = _canonical_hash(
                    data["event_id"],
                    data["event_kind"],
                    data["timestamp_utc"],
                    data["actor_id"],
                    data["payload"],
                )
                if data["event_hash"] != expected_hash:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event_id} "
                        f"stored hash {data['event_hash']} != computed {expected_hash}"
                    )

                event = EventRecord(
                    event_id=event_id,
                    event_kind=RelayEventKind(data["event_kind"]),
                    timestamp_utc=data["timestamp_utc"],
                    actor_id=data["actor_id"],
                    payload=data["payload"],
                    event_hash=data["event_hash"],
                )
                self._events.append(event)
                self._event_ids.add(event_id)
