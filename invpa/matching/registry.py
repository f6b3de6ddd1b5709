"""Batch-scoped registry of deduplicated counterparties.

The registry is the one resource shared by all document workers. Anything that
reads it and then writes depending on what it read (match-or-register) must run
inside ``transaction()`` so that two workers cannot both decide a counterparty
is new and register it twice.
"""

import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from pydantic import BaseModel

from invpa.extraction.schema import Counterparty


class RegistryEntry(BaseModel):
    """A registered counterparty and the file it was first seen in."""

    source_file: str
    counterparty: Counterparty


class CounterpartyRegistry:
    """Thread-safe, insertion-ordered registry of counterparties.

    Ids are assigned on registration and never reassigned.
    """

    def __init__(self) -> None:
        self._entries: dict[str, RegistryEntry] = {}
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator["CounterpartyRegistry"]:
        """Hold the registry lock across a read-decide-write sequence."""
        with self._lock:
            yield self

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def counterparties(self) -> list[Counterparty]:
        """Snapshot of registered counterparties in registration order."""
        with self._lock:
            return [entry.counterparty for entry in self._entries.values()]

    def entries(self) -> list[RegistryEntry]:
        """Snapshot of registry entries (with provenance) in registration order."""
        with self._lock:
            return list(self._entries.values())

    def get(self, counterparty_id: str) -> Counterparty | None:
        with self._lock:
            entry = self._entries.get(counterparty_id)
            return entry.counterparty if entry else None

    def register(self, counterparty: Counterparty, source_file: str) -> Counterparty:
        """Register a new counterparty under a fresh id.

        Args:
            counterparty: Newly extracted counterparty (must not carry an id)
            source_file: Document the counterparty was first seen in

        Returns:
            The registered counterparty, with its id

        Raises:
            ValueError: If the counterparty already has an id
        """
        if counterparty.id is not None:
            raise ValueError(f"Counterparty already registered with id {counterparty.id}")

        registered = counterparty.model_copy(update={"id": str(uuid.uuid4())})
        with self._lock:
            self._entries[registered.id] = RegistryEntry(  # type: ignore[index]
                source_file=source_file, counterparty=registered
            )
        return registered

    def update(self, counterparty: Counterparty) -> None:
        """Replace a registered counterparty, keeping its provenance.

        Raises:
            KeyError: If the counterparty id is not registered
        """
        with self._lock:
            if counterparty.id is None or counterparty.id not in self._entries:
                raise KeyError(f"Counterparty {counterparty.id!r} is not registered")
            entry = self._entries[counterparty.id]
            self._entries[counterparty.id] = entry.model_copy(update={"counterparty": counterparty})
