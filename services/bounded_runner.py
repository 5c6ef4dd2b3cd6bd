# User value: This file keeps large accuracy runs from flooding the recognition engines with scans.
"""Run a lazily produced stream of jobs with a cap on outstanding jobs.

NOTE: fewer than ``max_concurrency`` jobs may be outstanding at a time. With a
cap of 2, if job 2 finishes before job 1, job 3 starts only once job 1 has
finished: free slots are refilled by queue position, not by completion order.
Do not switch to ``asyncio.wait(..., return_when=FIRST_COMPLETED)``; reacting
to whichever job finishes first hangs the engines' pooled workers.
"""
import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Generic, TypeVar, Union

T = TypeVar("T")


class Done:
    """Job result meaning the stream has no more work."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DONE"


DONE = Done()


@dataclass(frozen=True)
class Value(Generic[T]):
    value: T


JobResult = Union[Done, Value[T]]
JobProducer = Callable[[], Awaitable[JobResult]]


async def run_bounded(job_producer: JobProducer, max_concurrency: int) -> None:
    """Invoke ``job_producer`` until a job yields ``DONE``.

    At most ``max_concurrency`` jobs are outstanding. The oldest outstanding
    job is always the one awaited next. A failing job propagates out of this
    call; jobs still outstanding at that point are abandoned, not cancelled.
    """
    if max_concurrency < 1:
        raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")

    in_flight: Deque["asyncio.Future[Any]"] = deque()
    while True:
        while len(in_flight) < max_concurrency:
            in_flight.append(asyncio.ensure_future(job_producer()))
        result = await in_flight.popleft()
        if isinstance(result, Done):
            break
        if not isinstance(result, Value):
            raise TypeError(f"job must return DONE or Value(...), got {type(result).__name__}")

    while in_flight:
        await in_flight.popleft()
