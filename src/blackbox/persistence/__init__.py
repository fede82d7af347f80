"""Persistence — the append-only relay audit log."""

from blackbox.persistence.event_log import EventLog, EventRecord, RelayEventKind

__all__ = ["EventLog", "EventRecord", "RelayEventKind"]
