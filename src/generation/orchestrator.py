# src/generation/orchestrator.py — v1
"""Generation orchestrator — submission, background polling and fallback.

Lifecycle of one generation:

    pending ──submit ok──▶ processing ──poll: locator──▶ completed
       │                       └──poll error / budget exhausted /
       │                          too many transport errors / cancel──▶ failed
       └──submit error──▶ fallback ok ──▶ completed (degraded)
                           fallback error ──▶ failed (submission error message)

The orchestrator never consults the artifact cache. Callers check the cache
first and write back on completion (see clipforge.api.service).
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable

from clipforge.config.settings import ConfigurationError, Settings
from clipforge.fallback.describer import FallbackDescriber
from clipforge.generation.errors import (
    CANCELLED_MESSAGE,
    FallbackError,
    GenerationTimeoutError,
    TransportError,
    UpstreamError,
)
from clipforge.generation.models import (
    GenerationRecord,
    GenerationRequest,
    GenerationResult,
)
from clipforge.generation.registry import StatusRegistry
from clipforge.logging.context import set_generation_context, set_provider_context
from clipforge.providers.base_provider import BaseVideoProvider

logger = logging.getLogger(__name__)

CompletionListener = Callable[[GenerationRecord], Awaitable[None]]

_SUBMITTED_PROGRESS = 20.0
_MAX_ESTIMATED_PROGRESS = 95.0


@dataclass(frozen=True)
class PollPolicy:
    """Polling budget for one generation."""

    initial_delay_s: float = 0.0
    interval_s: float = 5.0
    max_attempts: int = 60
    max_consecutive_errors: int = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> PollPolicy:
        return cls(
            initial_delay_s=settings.poll_initial_delay_s,
            interval_s=settings.poll_interval_s,
            max_attempts=settings.poll_max_attempts,
            max_consecutive_errors=settings.poll_max_consecutive_errors,
        )

    @property
    def ceiling_s(self) -> float:
        return self.initial_delay_s + self.max_attempts * self.interval_s


class CancellationToken:
    """Cooperative cancellation signal threaded through a poll loop."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, delay_s: float) -> bool:
        """Sleep for delay_s or until cancelled. Returns True if cancelled."""
        if self._event.is_set():
            return True
        if delay_s <= 0:
            await asyncio.sleep(0)
            return self._event.is_set()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay_s)
        except asyncio.TimeoutError:
            return False
        return True


def estimate_progress(attempts: int) -> float:
    """Advisory progress heuristic while the provider gives no hint."""
    return float(min(_SUBMITTED_PROGRESS + attempts * 2, _MAX_ESTIMATED_PROGRESS))


@dataclass
class _ActiveGeneration:
    task: asyncio.Task[None]
    token: CancellationToken


class GenerationOrchestrator:
    """Submits video generations and drives their status records to a terminal state.

    Args:
        provider: Primary video provider.
        registry: Status record store (shared with status readers).
        fallback: Optional degraded describer used when submission fails.
        settings: Source of defaults (aspect ratio, resolution, duration, polling).
        poll_policy: Explicit polling budget; overrides settings.
    """

    def __init__(
        self,
        provider: BaseVideoProvider,
        registry: StatusRegistry | None = None,
        fallback: FallbackDescriber | None = None,
        settings: Settings | None = None,
        poll_policy: PollPolicy | None = None,
    ) -> None:
        self._provider = provider
        self._registry = registry or StatusRegistry()
        self._fallback = fallback
        self._settings = settings or Settings()
        self._poll_policy = poll_policy or PollPolicy.from_settings(self._settings)
        self._active: dict[str, _ActiveGeneration] = {}
        self._listeners: list[CompletionListener] = []

    @property
    def registry(self) -> StatusRegistry:
        return self._registry

    @property
    def poll_policy(self) -> PollPolicy:
        return self._poll_policy

    @property
    def active_count(self) -> int:
        return len(self._active)

    def add_completion_listener(self, listener: CompletionListener) -> None:
        """Register an async callback invoked with every terminal record."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Caller-facing API
    # ------------------------------------------------------------------

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Create a generation and submit it to the primary provider.

        Returns immediately after submission. If the submission fails, the
        fallback describer runs synchronously and its outcome is returned.

        Raises:
            ConfigurationError: Provider credentials are missing.
        """
        generation_id = f"gen-{uuid.uuid4().hex[:12]}"
        now = datetime.now(timezone.utc)
        self._registry.create(
            GenerationRecord(
                generation_id=generation_id,
                subject_id=request.subject_id,
                artifact_type=request.artifact_type,
                prompt_text=request.prompt_text,
                created_at=now,
                updated_at=now,
            )
        )

        try:
            handle = await self._provider.start(
                request.prompt_text,
                aspect_ratio=request.aspect_ratio or self._settings.video_aspect_ratio,
                resolution=request.resolution or self._settings.video_resolution,
                duration_s=request.duration_s or self._settings.video_duration_s,
            )
        except ConfigurationError as e:
            record = self._registry.update(
                generation_id, status="failed", error_message=str(e), progress_percent=100.0,
            )
            await self._notify(record)
            raise
        except (TransportError, UpstreamError) as e:
            logger.warning("Generation %s: submission failed: %s", generation_id, e)
            return await self._resolve_with_fallback(generation_id, request, str(e))
        except Exception as e:
            logger.exception("Generation %s: unexpected submission error", generation_id)
            return await self._resolve_with_fallback(generation_id, request, str(e) or type(e).__name__)

        record = self._registry.update(
            generation_id,
            status="processing",
            operation_handle=handle,
            progress_percent=_SUBMITTED_PROGRESS,
        )
        token = CancellationToken()
        task = asyncio.create_task(
            self._poll_loop(generation_id, handle, request.subject_id, token),
            name=f"poll-{generation_id}",
        )
        self._active[generation_id] = _ActiveGeneration(task=task, token=token)
        task.add_done_callback(lambda _t, gid=generation_id: self._active.pop(gid, None))

        logger.info(
            "Generation %s submitted to %s (subject=%s, type=%s)",
            generation_id, self._provider.provider_name,
            request.subject_id, request.artifact_type,
        )
        return GenerationResult.from_record(record)

    def get_status(self, generation_id: str) -> GenerationRecord | None:
        """Point-in-time snapshot of a generation record."""
        return self._registry.get(generation_id)

    def clear_terminal(self) -> int:
        """Drop completed/failed records. Returns the number removed."""
        return self._registry.clear_terminal()

    def cancel(self, generation_id: str) -> bool:
        """Ask a running poll loop to stop. Returns False if it is not running."""
        active = self._active.get(generation_id)
        if active is None:
            return False
        active.token.cancel()
        logger.info("Generation %s: cancellation requested", generation_id)
        return True

    async def wait_for(
        self, generation_id: str, timeout: float | None = None,
    ) -> GenerationRecord | None:
        """Wait until a generation's poll loop has finished, then return its record."""
        active = self._active.get(generation_id)
        if active is not None:
            await asyncio.wait_for(asyncio.shield(active.task), timeout=timeout)
        return self._registry.get(generation_id)

    async def shutdown(self) -> None:
        """Cancel every running poll loop and wait for them to settle."""
        active = list(self._active.values())
        for generation in active:
            generation.token.cancel()
        if active:
            await asyncio.gather(*(g.task for g in active), return_exceptions=True)
            logger.info("Stopped %d running generations", len(active))

    # ------------------------------------------------------------------
    # Fallback
    # ------------------------------------------------------------------

    async def _resolve_with_fallback(
        self, generation_id: str, request: GenerationRequest, submit_error: str,
    ) -> GenerationResult:
        if self._fallback is None:
            record = self._fail(generation_id, submit_error)
            await self._notify(record)
            return GenerationResult.from_record(record)

        set_provider_context(self._fallback.provider_name)
        try:
            description = await self._fallback.describe(request.prompt_text)
        except FallbackError as e:
            logger.error("Generation %s: fallback also failed: %s", generation_id, e)
            record = self._fail(generation_id, submit_error)
        else:
            record = self._registry.update(
                generation_id,
                status="completed",
                degraded=True,
                result_text=description,
                progress_percent=100.0,
                error_message=f"Video generation failed ({submit_error}); text description provided",
            )
            logger.info("Generation %s: resolved with degraded description", generation_id)
        finally:
            set_provider_context(None)

        await self._notify(record)
        return GenerationResult.from_record(record)

    # ------------------------------------------------------------------
    # Poll loop
    # ------------------------------------------------------------------

    async def _poll_loop(
        self,
        generation_id: str,
        handle: str,
        subject_id: str,
        token: CancellationToken,
    ) -> None:
        # Runs in its own task context, so this does not leak to the caller.
        set_generation_context(generation_id, subject_id)
        set_provider_context(self._provider.provider_name)
        policy = self._poll_policy
        try:
            record = await self._drive(generation_id, handle, token, policy)
        except asyncio.CancelledError:
            await self._notify(self._fail(generation_id, CANCELLED_MESSAGE))
            raise
        except GenerationTimeoutError as e:
            logger.error(
                "Generation %s timed out after %d attempts (%.0fs ceiling)",
                generation_id, e.attempts, policy.ceiling_s,
            )
            record = self._fail(generation_id, str(e), attempts=e.attempts)
        except Exception as e:
            logger.exception("Generation %s: poll loop crashed", generation_id)
            record = self._fail(generation_id, f"Polling failed: {e}")
        await self._notify(record)

    async def _drive(
        self,
        generation_id: str,
        handle: str,
        token: CancellationToken,
        policy: PollPolicy,
    ) -> GenerationRecord:
        attempts = 0
        consecutive_errors = 0
        progress = _SUBMITTED_PROGRESS

        if policy.initial_delay_s > 0 and await token.sleep(policy.initial_delay_s):
            return self._fail(generation_id, CANCELLED_MESSAGE)

        while attempts < policy.max_attempts:
            if token.cancelled:
                return self._fail(generation_id, CANCELLED_MESSAGE)

            attempts += 1
            logger.debug(
                "Generation %s: poll attempt %d/%d", generation_id, attempts, policy.max_attempts,
            )
            hint: float | None = None
            try:
                result = await self._provider.poll(handle)
            except TransportError as e:
                consecutive_errors += 1
                logger.warning(
                    "Generation %s: poll transport error %d/%d: %s",
                    generation_id, consecutive_errors, policy.max_consecutive_errors, e,
                )
                if consecutive_errors > policy.max_consecutive_errors:
                    return self._fail(generation_id, str(e), attempts=attempts)
            except UpstreamError as e:
                return self._fail(generation_id, str(e), attempts=attempts)
            else:
                consecutive_errors = 0
                if result.done:
                    if result.result_locator:
                        logger.info(
                            "Generation %s completed after %d polls", generation_id, attempts,
                        )
                        return self._registry.update(
                            generation_id,
                            status="completed",
                            result_locator=result.result_locator,
                            progress_percent=100.0,
                            attempts=attempts,
                        )
                    return self._fail(
                        generation_id, result.error or "No video in response", attempts=attempts,
                    )
                hint = result.progress_hint

            estimate = hint if hint is not None else estimate_progress(attempts)
            progress = max(progress, min(estimate, 99.0))
            self._registry.update(generation_id, progress_percent=progress, attempts=attempts)

            if attempts < policy.max_attempts and await token.sleep(policy.interval_s):
                return self._fail(generation_id, CANCELLED_MESSAGE, attempts=attempts)

        raise GenerationTimeoutError(attempts)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fail(
        self, generation_id: str, message: str, **changes: object,
    ) -> GenerationRecord | None:
        current = self._registry.get(generation_id)
        if current is None or current.is_terminal:
            return current
        logger.warning("Generation %s failed: %s", generation_id, message)
        return self._registry.update(
            generation_id, status="failed", error_message=message, **changes,
        )

    async def _notify(self, record: GenerationRecord | None) -> None:
        if record is None:
            return
        for listener in self._listeners:
            try:
                await listener(record)
            except Exception:
                logger.exception(
                    "Completion listener failed for generation %s", record.generation_id,
                )
