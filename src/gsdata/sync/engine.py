"""Synchronization engine: scan, diff, execute, report."""

from datetime import datetime
from typing import List, Optional

from .exclusions import load_exclusions
from .executor import PlanExecutor
from .manifest import select_manifest_entries, write_manifest
from .models import SyncAbortedError, SyncOutcome, SyncReport
from .planner import build_plan
from .scanner import ScanError, scan_directory
from .transfer import select_transfer
from ..auth.base import CredentialSupplier
from ..auth.token_holder import TokenHolder
from ..config.schema import SyncConfig
from ..config.settings import get_settings
from ..crypto import Cipher
from ..performance import get_metrics_collector
from ..storage.base import ObjectStoreClient, RemoteEntry, StoreError
from ..utils.logging import get_logger, log_async_execution_time


class SyncEngine:
    """Synchronizes a local directory into a bucket."""

    def __init__(
        self,
        store: ObjectStoreClient,
        credentials: CredentialSupplier,
        cipher: Optional[Cipher] = None
    ):
        """Initialize sync engine.

        Args:
            store: Object store client
            credentials: Supplier of access tokens, refreshed on expiry
            cipher: Encryption capability, required when recipients are configured
        """
        self.store = store
        self.credentials = credentials
        self.cipher = cipher
        self.settings = get_settings()
        self.metrics = get_metrics_collector()
        self.logger = get_logger(self.__class__.__name__)

        self._executor: Optional[PlanExecutor] = None
        self._cancel_requested = False

    def cancel(self) -> None:
        """Stop dispatching new actions. Safe to call from a signal handler."""
        self._cancel_requested = True
        if self._executor is not None:
            self._executor.cancel()

    @log_async_execution_time
    async def run(self, config: SyncConfig) -> SyncReport:
        """Run one synchronization.

        Configuration problems raise ConfigurationError, and bucket-level
        failures raise SyncAbortedError, before any object is touched.
        Per-key failures are reported in the returned SyncReport.
        """
        start_time = datetime.now()

        self.logger.info(
            "Starting sync",
            bucket=config.bucket,
            directory=str(config.directory),
            acl=config.acl.value,
            encrypted=config.encrypted,
            purge=config.purge,
            md5sums=config.md5sums
        )

        exclusions = load_exclusions(config.exclusions_file)
        transfer = select_transfer(self.cipher, config.recipients)

        try:
            local = scan_directory(
                config.directory,
                exclusions,
                ignore={self.settings.sync.manifest_name}
            )
        except ScanError as e:
            raise SyncAbortedError(str(e)) from e

        tokens = TokenHolder(self.credentials)
        executor = PlanExecutor(
            store=self.store,
            tokens=tokens,
            bucket=config.bucket,
            root=config.directory,
            acl=config.acl,
            transfer=transfer,
            max_workers=config.max_workers
        )
        self._executor = executor
        if self._cancel_requested:
            executor.cancel()

        remote = await self._list_remote(executor, config.bucket)
        plan = build_plan(
            local,
            remote,
            purge=config.purge,
            encrypted=config.encrypted,
            exclusions=exclusions
        )

        outcomes = await executor.execute(plan)

        report = SyncReport(
            bucket=config.bucket,
            plan=plan,
            outcomes=outcomes,
            cancelled=executor.cancelled
        )

        if config.md5sums:
            report.manifest_path = write_manifest(
                select_manifest_entries(local, outcomes),
                config.manifest_path
            )
            self.logger.info("Wrote manifest", path=str(report.manifest_path))

        report.duration = (datetime.now() - start_time).total_seconds()
        report.metrics = self.metrics.get_all_metrics()
        self._log_report(report)
        return report

    async def _list_remote(self, executor: PlanExecutor, bucket: str) -> List[RemoteEntry]:
        async def operation(token):
            return await self.store.list_objects(bucket, token.value)

        try:
            remote, _ = await executor.call_with_retries(operation, bucket)
        except StoreError as e:
            self.logger.error("Cannot list bucket", bucket=bucket, error=str(e))
            raise SyncAbortedError(f"Cannot list bucket {bucket}: {e}") from e
        return remote

    def _log_report(self, report: SyncReport) -> None:
        for outcome in report.outcomes:
            self._log_outcome(outcome)

        self.logger.info(
            "Sync completed",
            bucket=report.bucket,
            succeeded=report.succeeded,
            failed=report.failed,
            skipped=report.skipped,
            cancelled=report.cancelled,
            duration=f"{report.duration:.2f}s"
        )
        self.logger.debug("Sync metrics", **report.metrics)

    def _log_outcome(self, outcome: SyncOutcome) -> None:
        if outcome.succeeded:
            self.logger.info(
                "Synchronized",
                key=outcome.key,
                action=outcome.action.value,
                attempts=outcome.attempts
            )
        else:
            self.logger.error(
                "Failed",
                key=outcome.key,
                action=outcome.action.value,
                attempts=outcome.attempts,
                reason=outcome.reason
            )
