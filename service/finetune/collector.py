"""Sample collector: keep reports whose every section rating is >= 9.

After each stored sample the total count is read back; when it lands on a
positive multiple of the batch size a fine-tune launch is dispatched as a
detached task. The count check is best effort: two collectors racing across
a batch boundary may both trigger, or neither.
"""
from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Mapping
from typing import Any, Awaitable, Callable

import httpx

import config
from errors import ValidationError
from finetune.models import CollectOutcome, Sample
from stores import SampleStore

log = logging.getLogger(__name__)

LaunchTrigger = Callable[[str], Awaitable[Any]]

STORED_MESSAGE = "Successfully stored training data (all ratings >= 9)."
NOT_STORED_MESSAGE = "Report not stored because not all ratings are >= 9."

# Strong references to detached trigger tasks; the event loop only keeps weak ones.
_PENDING_TRIGGERS: set[asyncio.Task] = set()


def _as_number(value: Any) -> float:
    """Numeric coercion; anything non-numeric becomes NaN.

    Only decimal literals count, so hex strings such as "0x10" become NaN.
    "Infinity" parses here but fails the finiteness check in
    ``all_ratings_qualify``.
    """
    if isinstance(value, bool) or value is None:
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text or "_" in text:
            return math.nan
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def all_ratings_qualify(ratings: Mapping[str, Any], threshold: float | None = None) -> bool:
    """True when ``ratings`` is non-empty and every value is a finite number >= threshold."""
    limit = config.RATING_THRESHOLD if threshold is None else threshold
    if not ratings:
        return False
    for value in ratings.values():
        number = _as_number(value)
        if not math.isfinite(number) or number < limit:
            return False
    return True


def should_trigger(count: int, batch_size: int | None = None) -> bool:
    size = config.FINETUNE_BATCH_SIZE if batch_size is None else batch_size
    return size > 0 and count > 0 and count % size == 0


def http_launch_trigger(
    url: str,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> LaunchTrigger:
    """Trigger that POSTs ``{"trigger": reason}`` to a remote launch endpoint."""

    async def _post(reason: str) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.post(url, json={"trigger": reason})
            resp.raise_for_status()
            return resp.json()

    return _post


class SampleCollector:
    def __init__(self, samples: SampleStore, launch: LaunchTrigger | None = None):
        self.samples = samples
        self.launch = launch

    async def store_sample(
        self,
        final_report_text: Any,
        ratings: Any,
        metadata: Mapping[str, Any] | None = None,
    ) -> CollectOutcome:
        if not isinstance(final_report_text, str) or not final_report_text or ratings is None:
            raise ValidationError("Missing finalReportText or ratings in request body.")
        if not isinstance(ratings, Mapping):
            raise ValidationError("ratings must be an object mapping section names to scores.")
        if len(ratings) == 0:
            raise ValidationError("No sections in ratings.")

        if not all_ratings_qualify(ratings):
            return CollectOutcome(stored=False, message=NOT_STORED_MESSAGE)

        sample = Sample(
            text=final_report_text,
            ratings=dict(ratings),
            metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
        )
        await asyncio.to_thread(self.samples.insert, sample)
        count = await asyncio.to_thread(self.samples.count)

        triggered = False
        if should_trigger(count):
            log.info("We have %d training records. Triggering fine-tune...", count)
            triggered = self._dispatch(f"Auto fine-tune at {count} records")

        return CollectOutcome(stored=True, message=STORED_MESSAGE, sample_count=count, triggered=triggered)

    def _dispatch(self, reason: str) -> bool:
        if self.launch is None:
            log.warning("No fine-tune trigger configured; skipping launch (%s)", reason)
            return False
        task = asyncio.create_task(self._run_trigger(reason))
        _PENDING_TRIGGERS.add(task)
        task.add_done_callback(_PENDING_TRIGGERS.discard)
        return True

    async def _run_trigger(self, reason: str) -> None:
        try:
            result = await self.launch(reason)
            log.info("Fine-tune trigger result: %s", result)
        except Exception as exc:
            # The sample is already stored; never fail the caller.
            log.error("Error triggering fine-tune (%s): %s", reason, exc, exc_info=True)


def pending_trigger_count() -> int:
    return len([t for t in _PENDING_TRIGGERS if not t.done()])


async def drain_pending_triggers() -> None:
    """Wait for every dispatched trigger to finish."""
    if _PENDING_TRIGGERS:
        await asyncio.gather(*list(_PENDING_TRIGGERS), return_exceptions=True)
