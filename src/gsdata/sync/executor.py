"""Concurrent execution of a sync plan against the object store."""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Tuple, TypeVar

from .models import OutcomeStatus, SyncAction, SyncOutcome, SyncPlan
from .transfer import PlainTransfer, TransferStrategy
from ..auth.base import AccessToken, AuthenticationError
from ..auth.token_holder import TokenHolder
from ..config.settings import get_settings
from ..crypto import CipherError
from ..performance import get_metrics_collector
from ..storage.acl import StorageAcl
from ..storage.base import (
    AuthExpiredError,
    NotFoundError,
    ObjectStoreClient,
    PermanentStoreError,
    StoreError,
    TransientStoreError,
)
from ..utils.logging import get_logger


T = TypeVar("T")


class PlanExecutor:
    """Runs the actions of a SyncPlan through a bounded pool of workers."""

    def __init__(
        self,
        store: ObjectStoreClient,
        tokens: TokenHolder,
        bucket: str,
        root: Path,
        acl: StorageAcl = StorageAcl.PRIVATE,
        transfer: Optional[TransferStrategy] = None,
        max_workers: Optional[int] = None,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_max: Optional[float] = None
    ):
        """Initialize the executor.

        Args:
            store: Object store client
            tokens: Shared token holder for the run
            bucket: Target bucket
            root: Synchronization root that plan keys are relative to
            acl: Canned ACL applied to uploads
            transfer: Upload transform; plain when omitted
            max_workers: Concurrent actions in flight
            max_attempts: Attempts per action on transient failures
            backoff_base: First retry delay in seconds, doubled per retry
            backoff_max: Upper bound for a single retry delay
        """
        settings = get_settings().sync
        self.store = store
        self.tokens = tokens
        self.bucket = bucket
        self.root = Path(root)
        self.acl = acl
        self.transfer = transfer or PlainTransfer()
        self.max_workers = max_workers or settings.max_workers
        self.max_attempts = max_attempts or settings.max_attempts
        self.backoff_base = settings.backoff_base_seconds if backoff_base is None else backoff_base
        self.backoff_max = settings.backoff_max_seconds if backoff_max is None else backoff_max

        self._cancelled = asyncio.Event()
        self.metrics = get_metrics_collector()
        self.logger = get_logger(self.__class__.__name__)

    def cancel(self) -> None:
        """Stop dispatching new actions; actions already running finish."""
        if not self._cancelled.is_set():
            self.logger.warning("Cancellation requested, no further actions will start")
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    async def execute(self, plan: SyncPlan) -> List[SyncOutcome]:
        """Execute every action in the plan.

        Returns:
            One outcome per planned key, in plan order
        """
        semaphore = asyncio.Semaphore(self.max_workers)

        async def run(key: str, action: SyncAction) -> SyncOutcome:
            if action == SyncAction.SKIP:
                return SyncOutcome(key, action, OutcomeStatus.SUCCESS, attempts=0)

            async with semaphore:
                if self.cancelled:
                    return SyncOutcome(key, action, OutcomeStatus.FAILED, attempts=0, reason="cancelled")
                return await self._execute_action(key, action)

        self.logger.info(
            "Executing sync plan",
            bucket=self.bucket,
            max_workers=self.max_workers,
            **plan.counts()
        )
        return list(await asyncio.gather(*(run(key, action) for key, action in plan.items())))

    async def call_with_retries(
        self,
        operation: Callable[[AccessToken], Awaitable[T]],
        label: str
    ) -> Tuple[T, int]:
        """Run a store operation under the retry rules.

        An expired token triggers one coordinated refresh and one more try.
        Transient failures are retried with exponential backoff until
        ``max_attempts`` is reached. Permanent failures are not retried.

        Returns:
            The operation's result and the number of attempts made

        Raises:
            StoreError: The final classified failure, with ``attempts`` set
        """
        attempts = 0
        transient_failures = 0
        auth_retried = False

        while True:
            try:
                token = await self.tokens.ensure_fresh_token()
            except AuthenticationError as auth_error:
                failure = AuthExpiredError(str(auth_error))
                failure.attempts = attempts
                raise failure from auth_error
            attempts += 1
            try:
                return await operation(token), attempts

            except AuthExpiredError as e:
                if auth_retried:
                    e.attempts = attempts
                    raise
                auth_retried = True
                self.logger.info("Access token rejected, refreshing", key=label, attempt=attempts)
                try:
                    await self.tokens.force_refresh(token)
                except AuthenticationError as auth_error:
                    failure = AuthExpiredError(str(auth_error))
                    failure.attempts = attempts
                    raise failure from auth_error

            except TransientStoreError as e:
                transient_failures += 1
                if transient_failures >= self.max_attempts:
                    e.attempts = attempts
                    raise
                delay = self._backoff_delay(transient_failures, e.retry_after)
                self.metrics.increment_counter("sync.retries")
                self.logger.warning(
                    "Transient failure, retrying",
                    key=label,
                    attempt=attempts,
                    delay=delay,
                    error=str(e)
                )
                await asyncio.sleep(delay)

            except PermanentStoreError as e:
                e.attempts = attempts
                raise

    async def _execute_action(self, key: str, action: SyncAction) -> SyncOutcome:
        if action == SyncAction.UPLOAD:
            try:
                payload = await self._prepare_upload(key)
            except (OSError, UnicodeError, CipherError) as e:
                self.logger.error("Cannot prepare upload", key=key, error=str(e))
                self.metrics.increment_counter("sync.failures")
                return SyncOutcome(key, action, OutcomeStatus.FAILED, attempts=0, reason=str(e))

            async def operation(token: AccessToken):
                return await self.store.put_object(
                    self.bucket, key, payload.data, self.acl, token.value, payload.metadata
                )
        else:
            async def operation(token: AccessToken):
                try:
                    await self.store.delete_object(self.bucket, key, token.value)
                except NotFoundError:
                    self.logger.info("Object already absent", key=key)

        try:
            _, attempts = await self.call_with_retries(operation, key)
        except StoreError as e:
            self.metrics.increment_counter("sync.failures")
            return SyncOutcome(key, action, OutcomeStatus.FAILED, attempts=e.attempts, reason=str(e))

        self.metrics.increment_counter(f"sync.{action.value}s")
        return SyncOutcome(key, action, OutcomeStatus.SUCCESS, attempts=attempts)

    async def _prepare_upload(self, key: str):
        # Object names must be valid UTF-8
        key.encode("utf-8")
        path = self.root / key
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, path.read_bytes)
        return await self.transfer.encode(data)

    def _backoff_delay(self, failures: int, retry_after: Optional[float]) -> float:
        if retry_after is not None:
            return min(retry_after, self.backoff_max)
        return min(self.backoff_base * (2 ** (failures - 1)), self.backoff_max)
