"""Sync orchestrator for the greenkeep client.

SyncOrchestrator runs push-then-pull cycles between the offline cache and
the sync server. It owns no data: every durable effect goes through
OfflineCache, and only after the server has confirmed it.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from greenkeep.logging_config import log_pull, log_push, log_sync_failure
from greenkeep.shared import MutationOperation, RejectReason, is_syncable_collection
from greenkeep.storage import OfflineCache
from greenkeep.types import PendingMutation, SyncReport, SyncState

from .transport import SyncClient, SyncTransportError

logger = logging.getLogger(__name__)

DEFAULT_AUTO_SYNC_INTERVAL = 30.0

# Batch-level statuses that mean the request itself was malformed
_BAD_REQUEST_STATUSES = frozenset({400, 422})


@dataclass
class _OutgoingRecord:
    """Queued mutations for one record, merged into a single pushed payload."""

    collection: str
    record_key: str
    operation: str
    payload: Dict[str, Any]
    mutation_ids: List[int] = field(default_factory=list)


def coalesce_mutations(mutations: List[PendingMutation]) -> List[_OutgoingRecord]:
    """Merge queued mutations per record, keeping queue order.

    Later fields win. A record created offline is pushed as one create
    carrying every later edit; otherwise the version read by the first
    queued edit is kept as the compare-and-swap base.
    """
    merged: Dict[tuple, _OutgoingRecord] = {}
    for mutation in mutations:
        key = (mutation.collection, mutation.record_key)
        outgoing = merged.get(key)
        if outgoing is None:
            merged[key] = _OutgoingRecord(
                collection=mutation.collection,
                record_key=mutation.record_key,
                operation=mutation.operation,
                payload=dict(mutation.payload),
                mutation_ids=[mutation.id],
            )
            continue

        base_version = outgoing.payload.get("version")
        outgoing.payload.update(mutation.payload)
        if base_version is not None:
            outgoing.payload["version"] = base_version
        outgoing.mutation_ids.append(mutation.id)

    for outgoing in merged.values():
        if outgoing.operation == MutationOperation.CREATE.value:
            outgoing.payload.pop("id", None)
            outgoing.payload.pop("version", None)
        elif outgoing.payload.get("deleted"):
            outgoing.operation = MutationOperation.DELETE.value
    return list(merged.values())


class SyncOrchestrator:
    """Drives sync cycles and the online/offline triggers.

    Args:
        cache: Local offline cache
        transport: Client for the sync server
        tenant_id: Tenant name used in the sync event log
    """

    def __init__(
        self,
        cache: OfflineCache,
        transport: SyncClient,
        tenant_id: Optional[str] = None,
    ):
        self.cache = cache
        self.transport = transport
        self.tenant_id = tenant_id or getattr(transport, "tenant_id", None) or "default"
        self._lock = threading.Lock()
        self._state = SyncState.IDLE
        self._online = True
        self._stop_event = threading.Event()
        self._auto_thread: Optional[threading.Thread] = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._online

    # === Cycle ===

    def sync(self, full: bool = False) -> SyncReport:
        """Run one push-then-pull cycle.

        Only one cycle runs at a time; a call made while another is in
        progress returns immediately with ``skipped=True``.

        Args:
            full: Reset all checkpoints first so every record is pulled again
        """
        if not self._lock.acquire(blocking=False):
            logger.debug("Sync already in progress, skipping")
            return SyncReport(skipped=True)

        self._state = SyncState.SYNCING
        report = SyncReport()
        try:
            if full:
                self.cache.reset_checkpoints()
                logger.info("Checkpoints reset for full resync")
            self._push(report)
            self._pull(report)
            self.cache.set_last_sync_time()
        except SyncTransportError as e:
            logger.warning(f"Sync aborted: {e}")
            report.errors.append(str(e))
            log_sync_failure(self.tenant_id, str(e))
        finally:
            report.checkpoints = self.cache.get_checkpoints()
            self._state = SyncState.IDLE
            self._lock.release()

        logger.info(
            f"Sync complete: pushed={report.pushed}, accepted={report.accepted}, "
            f"rejected={report.rejected}, conflicts={report.conflicts}, pulled={report.pulled}"
        )
        return report

    def _push(self, report: SyncReport) -> None:
        mutations = self.cache.get_pending_mutations()
        if not mutations:
            return

        outgoing = coalesce_mutations(mutations)
        changes: Dict[str, List[Dict[str, Any]]] = {}
        for record in outgoing:
            changes.setdefault(record.collection, []).append(record.payload)
        report.pushed = len(outgoing)
        logger.debug(f"Pushing {len(outgoing)} records from {len(mutations)} queued mutations")

        try:
            result = self.transport.push(changes)
        except SyncTransportError as e:
            if e.status_code in _BAD_REQUEST_STATUSES:
                ids = [mid for record in outgoing for mid in record.mutation_ids]
                self.cache.record_failure(ids, str(e))
            raise

        answered = self._apply_accepted(outgoing, result.get("accepted", {}), report)
        answered |= self._apply_rejected(outgoing, result.get("rejected", {}), report)

        unanswered = [record for record in outgoing if id(record) not in answered]
        for record in unanswered:
            self.cache.record_failure(record.mutation_ids, "No result returned by server")
            report.errors.append(f"No result for {record.collection}/{record.record_key}")

        log_push(self.tenant_id, report.pushed, report.accepted, report.rejected)

    @staticmethod
    def _find(outgoing: List[_OutgoingRecord], collection: str, entry: Dict[str, Any]):
        temp_id = entry.get("temp_id")
        record_id = entry.get("id")
        for record in outgoing:
            if record.collection != collection:
                continue
            if temp_id and record.payload.get("temp_id") == temp_id and "id" not in record.payload:
                return record
            if record_id and record.payload.get("id") == record_id:
                return record
        return None

    def _apply_accepted(
        self, outgoing: List[_OutgoingRecord], accepted: Dict[str, list], report: SyncReport
    ) -> set:
        answered = set()
        for collection, entries in accepted.items():
            for entry in entries:
                record = self._find(outgoing, collection, entry)
                if record is None or id(record) in answered:
                    logger.warning(f"Server accepted an unknown record in {collection}: {entry}")
                    continue
                self.cache.apply_acceptance(
                    collection,
                    record.record_key,
                    entry["id"],
                    int(entry["version"]),
                    mutation_ids=record.mutation_ids,
                )
                answered.add(id(record))
                report.accepted += 1
        return answered

    def _apply_rejected(
        self, outgoing: List[_OutgoingRecord], rejected: Dict[str, list], report: SyncReport
    ) -> set:
        answered = set()
        for collection, entries in rejected.items():
            for entry in entries:
                record = self._find(outgoing, collection, entry)
                if record is None or id(record) in answered:
                    logger.warning(f"Server rejected an unknown record in {collection}: {entry}")
                    continue
                answered.add(id(record))
                report.rejected += 1
                reason = entry.get("reason")
                if reason == RejectReason.CONFLICT.value:
                    self.cache.record_conflict(
                        record.mutation_ids,
                        collection,
                        record.record_key,
                        entry.get("server_record") or {"version": entry.get("server_version", 0)},
                        local_payload=record.payload,
                    )
                    report.conflicts += 1
                else:
                    message = entry.get("message") or reason or "rejected"
                    self.cache.record_failure(record.mutation_ids, f"{reason}: {message}")
                    report.errors.append(f"{collection}/{record.record_key} rejected: {message}")
        return answered

    def _pull(self, report: SyncReport) -> None:
        checkpoints = self.cache.get_checkpoints()
        changes = self.transport.pull(checkpoints)

        for collection, records in changes.items():
            if not is_syncable_collection(collection):
                logger.warning(f"Ignoring pulled records for unknown collection {collection}")
                continue
            if not records:
                continue
            self.cache.save_records(collection, records)
            report.pulled += len(records)
            max_version = max(int(r.get("version") or 0) for r in records)
            current = checkpoints.get(collection, 0)
            if max_version > current:
                self.cache.set_checkpoint(collection, max_version)

        log_pull(self.tenant_id, report.pulled, self.cache.get_checkpoints())

    # === Triggers ===

    def set_online(self, online: bool) -> Optional[SyncReport]:
        """Record connectivity; going from offline to online starts a sync."""
        was_online = self._online
        self._online = online
        if online and not was_online:
            logger.info("Connectivity restored, syncing")
            return self.sync()
        if not online and was_online:
            logger.info("Offline, changes will be queued")
        return None

    def check_connectivity(self) -> bool:
        """Probe the server health endpoint and update the online flag."""
        health = self.transport.health_check()
        healthy = bool(health.get("healthy"))
        if not healthy:
            logger.debug(f"Server unreachable: {health.get('error')}")
        self.set_online(healthy)
        return healthy

    def _auto_sync_loop(self, interval: float) -> None:
        while not self._stop_event.wait(interval):
            if not self._online or self.cache.pending_count() == 0:
                continue
            try:
                self.sync()
            except Exception as e:
                # Keep the loop alive; the next tick retries
                logger.error(f"Background sync failed: {e}", exc_info=True)

    def start_auto_sync(self, interval: float = DEFAULT_AUTO_SYNC_INTERVAL) -> None:
        """Sync every ``interval`` seconds while online with queued changes."""
        if self._auto_thread is not None and self._auto_thread.is_alive():
            return
        self._stop_event.clear()
        self._auto_thread = threading.Thread(
            target=self._auto_sync_loop,
            args=(interval,),
            name="greenkeep-auto-sync",
            daemon=True,
        )
        self._auto_thread.start()
        logger.debug(f"Auto sync started (every {interval}s)")

    def stop_auto_sync(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        if self._auto_thread is not None:
            self._auto_thread.join(timeout)
            self._auto_thread = None
