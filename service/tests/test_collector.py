from __future__ import annotations

import asyncio
import json
import math

import httpx
import pytest

from errors import DependencyReadError, DependencyWriteError, ValidationError
from fakes import CountFailingSampleStore, InsertFailingSampleStore, make_sample
from finetune.collector import (
    NOT_STORED_MESSAGE,
    STORED_MESSAGE,
    SampleCollector,
    all_ratings_qualify,
    drain_pending_triggers,
    http_launch_trigger,
    pending_trigger_count,
    should_trigger,
)


@pytest.mark.parametrize(
    ("ratings", "expected"),
    [
        ({"introduction": 9, "background": 10}, True),
        ({"introduction": 9.0}, True),
        ({"introduction": "9.5", "limitations": " 10 "}, True),
        ({"introduction": 8.99}, False),
        ({"introduction": 9, "background": 8}, False),
        ({"introduction": "nine"}, False),
        ({"introduction": ""}, False),
        ({"introduction": None}, False),
        ({"introduction": True}, False),
        ({"introduction": [10]}, False),
        ({"introduction": "1_0"}, False),
        ({"introduction": math.nan}, False),
        ({"introduction": math.inf}, False),
        ({"introduction": "Infinity"}, False),
        ({"introduction": "0x10"}, False),
        ({}, False),
    ],
)
def test_rating_gate(ratings, expected):
    assert all_ratings_qualify(ratings) is expected


@pytest.mark.parametrize("count", range(0, 31))
def test_trigger_only_on_positive_multiples_of_batch_size(count):
    assert should_trigger(count, 5) is (count > 0 and count % 5 == 0)


def test_zero_batch_size_never_triggers():
    assert not should_trigger(5, 0)


def test_qualifying_report_stores_exactly_one_sample(samples):
    collector = SampleCollector(samples)
    outcome = asyncio.run(
        collector.store_sample("Report text", {"introduction": 9, "background": 10}, {"reportId": "r-1"})
    )

    assert outcome.stored is True
    assert outcome.message == STORED_MESSAGE
    assert outcome.sample_count == 1
    assert outcome.triggered is False
    stored = samples.list_all()
    assert len(stored) == 1
    assert stored[0].text == "Report text"
    assert stored[0].metadata == {"reportId": "r-1"}
    assert stored[0].created_at is not None


def test_low_rating_is_not_stored(samples):
    collector = SampleCollector(samples)
    outcome = asyncio.run(collector.store_sample("Report text", {"introduction": 8}))

    assert outcome.stored is False
    assert outcome.message == NOT_STORED_MESSAGE
    assert samples.count() == 0


@pytest.mark.parametrize(
    ("text", "ratings", "message"),
    [
        ("", {"introduction": 9}, "Missing finalReportText or ratings in request body."),
        (None, {"introduction": 9}, "Missing finalReportText or ratings in request body."),
        ("Report", None, "Missing finalReportText or ratings in request body."),
        ("Report", {}, "No sections in ratings."),
        ("Report", [9, 10], "ratings must be an object mapping section names to scores."),
    ],
)
def test_invalid_input_raises_without_side_effects(samples, text, ratings, message):
    collector = SampleCollector(samples)
    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(collector.store_sample(text, ratings))
    assert exc_info.value.message == message
    assert samples.count() == 0


def test_fifth_sample_dispatches_launch(samples):
    for i in range(4):
        samples.insert(make_sample(f"report {i}"))
    reasons: list[str] = []

    async def launch(reason):
        reasons.append(reason)
        return {"message": "started"}

    async def run():
        outcome = await SampleCollector(samples, launch=launch).store_sample("report 4", {"a": 10})
        await drain_pending_triggers()
        return outcome

    outcome = asyncio.run(run())
    assert outcome.triggered is True
    assert outcome.sample_count == 5
    assert reasons == ["Auto fine-tune at 5 records"]
    assert pending_trigger_count() == 0


def test_non_boundary_count_does_not_dispatch(samples):
    for i in range(5):
        samples.insert(make_sample(f"report {i}"))
    reasons: list[str] = []

    async def launch(reason):
        reasons.append(reason)

    async def run():
        outcome = await SampleCollector(samples, launch=launch).store_sample("report 5", {"a": 10})
        await drain_pending_triggers()
        return outcome

    outcome = asyncio.run(run())
    assert outcome.triggered is False
    assert outcome.sample_count == 6
    assert reasons == []


def test_launch_failure_never_reaches_caller(samples, caplog):
    for i in range(4):
        samples.insert(make_sample(f"report {i}"))

    async def launch(reason):
        raise RuntimeError("launcher unreachable")

    async def run():
        outcome = await SampleCollector(samples, launch=launch).store_sample("report 4", {"a": 9})
        await drain_pending_triggers()
        return outcome

    outcome = asyncio.run(run())
    assert outcome.stored is True
    assert outcome.triggered is True
    assert samples.count() == 5
    assert "launcher unreachable" in caplog.text


def test_boundary_without_trigger_configured(samples):
    for i in range(4):
        samples.insert(make_sample(f"report {i}"))

    outcome = asyncio.run(SampleCollector(samples).store_sample("report 4", {"a": 9}))
    assert outcome.stored is True
    assert outcome.triggered is False


def test_insert_failure_propagates_without_trigger():
    samples = InsertFailingSampleStore()
    reasons: list[str] = []

    async def launch(reason):
        reasons.append(reason)

    async def run():
        try:
            await SampleCollector(samples, launch=launch).store_sample("report", {"a": 9})
        finally:
            await drain_pending_triggers()

    with pytest.raises(DependencyWriteError):
        asyncio.run(run())
    assert reasons == []
    assert pending_trigger_count() == 0


def test_count_failure_propagates_and_keeps_sample():
    samples = CountFailingSampleStore()
    for i in range(4):
        samples.insert(make_sample(f"report {i}"))
    reasons: list[str] = []

    async def launch(reason):
        reasons.append(reason)

    async def run():
        try:
            await SampleCollector(samples, launch=launch).store_sample("report 4", {"a": 9})
        finally:
            await drain_pending_triggers()

    with pytest.raises(DependencyReadError):
        asyncio.run(run())
    assert reasons == []
    assert [s.text for s in samples.list_all()][-1] == "report 4"
    assert len(samples.list_all()) == 5


def test_http_trigger_posts_reason():
    seen: list[httpx.Request] = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"message": "Fine-tune job started."})

    trigger = http_launch_trigger("https://launch.test/fine-tune", transport=httpx.MockTransport(handler))
    result = asyncio.run(trigger("Auto fine-tune at 5 records"))

    assert result == {"message": "Fine-tune job started."}
    assert seen[0].method == "POST"
    assert str(seen[0].url) == "https://launch.test/fine-tune"
    assert json.loads(seen[0].content) == {"trigger": "Auto fine-tune at 5 records"}


def test_http_trigger_error_reply_is_logged_and_swallowed(samples, caplog):
    for i in range(4):
        samples.insert(make_sample(f"report {i}"))
    seen: list[httpx.Request] = []

    def handler(request):
        seen.append(request)
        return httpx.Response(502, json={"error": "bad gateway"})

    trigger = http_launch_trigger("https://launch.test/fine-tune", transport=httpx.MockTransport(handler))

    async def run():
        outcome = await SampleCollector(samples, launch=trigger).store_sample("report 4", {"a": 9})
        await drain_pending_triggers()
        return outcome

    outcome = asyncio.run(run())
    assert outcome.stored is True
    assert outcome.triggered is True
    assert json.loads(seen[0].content) == {"trigger": "Auto fine-tune at 5 records"}
    assert "Error triggering fine-tune" in caplog.text
    assert "502" in caplog.text
