import asyncio
import threading
from collections.abc import Callable
from pathlib import Path

from ipedge.config import Settings
from ipedge.datasets.snapshot import DatasetSnapshot, load_maxmind_snapshot, load_snapshot
from ipedge.errors import DatasetError
from ipedge.logger import logger

# Requests still holding a replaced snapshot get this long to finish before its files are closed.
RETIRE_AFTER_SECONDS = 30.0


class DatasetStore:
    """Holds the current dataset snapshot behind a swappable reference.

    Readers call `current()` once per request and use that snapshot for the
    whole request; they never lock. A refresh builds a complete new snapshot
    first and then replaces the reference in a single assignment, so a reader
    sees either the old or the new snapshot in full. The replaced snapshot's
    geo table is closed `retire_after_seconds` later.
    """

    def __init__(
        self,
        snapshot: DatasetSnapshot,
        loader: Callable[[], DatasetSnapshot] | None = None,
        sources: tuple[Path, ...] = (),
        retire_after_seconds: float = RETIRE_AFTER_SECONDS,
    ) -> None:
        self._snapshot = snapshot
        self._loader = loader
        self._sources = sources
        self._retire_after_seconds = retire_after_seconds
        self._retiring: dict[int, tuple[threading.Timer, DatasetSnapshot]] = {}
        self._write_lock = threading.Lock()
        self._source_stamp = self._stamp()

    @classmethod
    def from_settings(cls, settings: Settings, retire_after_seconds: float = RETIRE_AFTER_SECONDS) -> "DatasetStore":
        """Create a store for the configured dataset files and load it once."""
        loader: Callable[[], DatasetSnapshot] | None
        if settings.MAXMIND_CITY_DB is not None:
            city_db, asn_db, extras = settings.MAXMIND_CITY_DB, settings.MAXMIND_ASN_DB, settings.DATASET_PATH

            def loader() -> DatasetSnapshot:
                return load_maxmind_snapshot(city_db, asn_db, extras)

            sources = tuple(p for p in (city_db, asn_db, extras) if p is not None)
        elif settings.DATASET_PATH is not None:
            path = settings.DATASET_PATH

            def loader() -> DatasetSnapshot:
                return load_snapshot(path)

            sources = (path,)
        else:
            logger.warning("No dataset configured; every lookup will return unknown location data")
            return cls(DatasetSnapshot.empty(), retire_after_seconds=retire_after_seconds)

        store = cls(loader(), loader=loader, sources=sources, retire_after_seconds=retire_after_seconds)
        logger.info(f"Loaded dataset snapshot version={store.current().version}")
        return store

    def current(self) -> DatasetSnapshot:
        return self._snapshot

    def swap(self, snapshot: DatasetSnapshot) -> DatasetSnapshot:
        """Install `snapshot` and return the one it replaced."""
        with self._write_lock:
            previous = self._snapshot
            self._snapshot = snapshot
        return previous

    def reload(self) -> DatasetSnapshot:
        """Rebuild the snapshot from its sources and swap it in.

        Raises DatasetError (keeping the current snapshot) if loading fails.
        """
        if self._loader is None:
            raise DatasetError("This dataset store has no sources to reload from.")
        stamp = self._stamp()
        snapshot = self._loader()
        previous = self.swap(snapshot)
        self._source_stamp = stamp
        self._retire(previous)
        return snapshot

    def close(self) -> None:
        """Close the current snapshot and any replaced ones still waiting to be closed."""
        with self._write_lock:
            retiring = list(self._retiring.values())
            self._retiring.clear()
        for timer, snapshot in retiring:
            timer.cancel()
            snapshot.geo.close()
        self._snapshot.geo.close()

    def _retire(self, snapshot: DatasetSnapshot) -> None:
        if self._retire_after_seconds <= 0:
            snapshot.geo.close()
            return
        timer = threading.Timer(self._retire_after_seconds, self._close_retired, args=(snapshot,))
        timer.daemon = True
        with self._write_lock:
            self._retiring[id(snapshot)] = (timer, snapshot)
        timer.start()

    def _close_retired(self, snapshot: DatasetSnapshot) -> None:
        with self._write_lock:
            entry = self._retiring.pop(id(snapshot), None)
        if entry is not None:
            snapshot.geo.close()

    def reload_if_changed(self) -> bool:
        if self._loader is None or self._stamp() == self._source_stamp:
            return False
        self.reload()
        return True

    def _stamp(self) -> tuple[float | None, ...]:
        stamps: list[float | None] = []
        for path in self._sources:
            try:
                stamps.append(path.stat().st_mtime)
            except OSError:
                stamps.append(None)
        return tuple(stamps)


async def refresh_periodically(store: DatasetStore, interval_seconds: float) -> None:
    """Reload changed dataset files every `interval_seconds` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            changed = await asyncio.to_thread(store.reload_if_changed)
        except DatasetError as exc:
            logger.error(f"Dataset refresh failed, keeping version={store.current().version} error={exc}")
            continue
        except Exception:
            logger.exception(f"Unexpected error during dataset refresh, keeping version={store.current().version}")
            continue
        if changed:
            logger.info(f"Dataset snapshot refreshed version={store.current().version}")
