"""Scheduling policy for polling a thread for new replies.

The policy is a pure function ``step(state, event) -> (state, actions)``. It
never touches a clock or a timer: callers pass the current time in each event
and carry out the returned actions (arm a timer, issue a request, render
posts). The browser script and ``ThreadFollower`` both drive this policy.

Rules:

- ``NoChange`` multiplies the interval by 1.5, a failed poll by 2, both
  capped at ``max_interval``.
- ``NewPosts`` resets the interval and advances the cursor.
- ``Stale``, or a timer firing after ``disable_after`` seconds without new
  posts, stops automatic polling until a manual refresh.
- A hidden surface cancels its timer. Becoming visible polls at once when at
  least one interval has passed since the last poll, otherwise it schedules
  the remainder.
- A manual refresh bypasses the timer, polls once and reschedules from there.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from threadline.models.thread import NewPosts, NoChange, PollCursor, PollResult, Stale, ThreadPost

NO_CHANGE_MULTIPLIER = 1.5
ERROR_MULTIPLIER = 2.0


@dataclass(frozen=True)
class PollConfig:
    """Intervals are in seconds."""

    initial_interval: float = 30.0
    max_interval: float = 120.0
    disable_after: float = 1800.0
    no_change_multiplier: float = NO_CHANGE_MULTIPLIER
    error_multiplier: float = ERROR_MULTIPLIER

    def __post_init__(self) -> None:
        if self.initial_interval <= 0 or self.max_interval < self.initial_interval:
            raise ValueError("intervals must satisfy 0 < initial_interval <= max_interval")


def next_interval(current: float, multiplier: float, maximum: float) -> float:
    """Grow ``current`` by ``multiplier`` without exceeding ``maximum``."""
    return min(current * multiplier, maximum)


@dataclass(frozen=True)
class PollState:
    cursor: PollCursor
    interval: float
    last_poll_at: float
    no_update_since: float
    visible: bool = True
    stopped: bool = False
    in_flight: bool = False


def initial_state(cursor: PollCursor, config: PollConfig, now: float) -> PollState:
    return PollState(
        cursor=cursor,
        interval=config.initial_interval,
        last_poll_at=now,
        no_update_since=now,
    )


# Events


@dataclass(frozen=True)
class Started:
    now: float


@dataclass(frozen=True)
class TimerFired:
    now: float


@dataclass(frozen=True)
class PollSucceeded:
    now: float
    result: PollResult


@dataclass(frozen=True)
class PollFailed:
    now: float


@dataclass(frozen=True)
class VisibilityChanged:
    now: float
    visible: bool


@dataclass(frozen=True)
class RefreshRequested:
    now: float


PollEvent = Started | TimerFired | PollSucceeded | PollFailed | VisibilityChanged | RefreshRequested


# Actions


@dataclass(frozen=True)
class Schedule:
    """Arm the timer to fire after ``delay`` seconds."""

    delay: float


@dataclass(frozen=True)
class CancelTimer:
    pass


@dataclass(frozen=True)
class Poll:
    """Ask the server for posts after ``cursor.last_cid``."""

    cursor: PollCursor


@dataclass(frozen=True)
class InsertPosts:
    posts: tuple[ThreadPost, ...]


@dataclass(frozen=True)
class Stop:
    """Automatic polling is over until a manual refresh."""


PollAction = Schedule | CancelTimer | Poll | InsertPosts | Stop

Step = tuple[PollState, tuple[PollAction, ...]]


def _begin_poll(state: PollState, now: float) -> Step:
    state = replace(state, last_poll_at=now, in_flight=True)
    return state, (Poll(state.cursor),)


def _reschedule(state: PollState) -> tuple[PollAction, ...]:
    # Hidden surfaces stay idle; becoming visible re-arms the timer.
    if state.stopped or not state.visible:
        return ()
    return (Schedule(state.interval),)


def _on_result(state: PollState, event: PollSucceeded, config: PollConfig) -> Step:
    result = event.result
    state = replace(state, in_flight=False)

    if isinstance(result, NewPosts):
        state = replace(
            state,
            cursor=state.cursor.advance(result.last_cid),
            interval=config.initial_interval,
            no_update_since=event.now,
        )
        return state, (InsertPosts(result.posts), *_reschedule(state))
    if isinstance(result, Stale):
        return replace(state, stopped=True), (Stop(),)
    if isinstance(result, NoChange):
        state = replace(
            state,
            interval=next_interval(state.interval, config.no_change_multiplier, config.max_interval),
        )
        return state, _reschedule(state)
    raise TypeError(f"unexpected poll result {result!r}")


def step(state: PollState, event: PollEvent, config: PollConfig) -> Step:
    """Advance the polling policy by one event."""
    if isinstance(event, Started):
        return state, _reschedule(state)

    if isinstance(event, TimerFired):
        if state.stopped or state.in_flight or not state.visible:
            return state, ()
        if event.now - state.no_update_since > config.disable_after:
            return replace(state, stopped=True), (Stop(),)
        return _begin_poll(state, event.now)

    if isinstance(event, PollSucceeded):
        return _on_result(state, event, config)

    if isinstance(event, PollFailed):
        state = replace(
            state,
            in_flight=False,
            interval=next_interval(state.interval, config.error_multiplier, config.max_interval),
        )
        return state, _reschedule(state)

    if isinstance(event, VisibilityChanged):
        state = replace(state, visible=event.visible)
        if not event.visible:
            return state, (CancelTimer(),)
        if state.stopped or state.in_flight:
            return state, ()
        elapsed = event.now - state.last_poll_at
        if elapsed >= state.interval:
            return _begin_poll(state, event.now)
        return state, (Schedule(state.interval - elapsed),)

    if isinstance(event, RefreshRequested):
        if state.in_flight:
            return state, ()
        if state.stopped:
            state = replace(state, stopped=False, no_update_since=event.now)
        state, actions = _begin_poll(state, event.now)
        return state, (CancelTimer(), *actions)

    raise TypeError(f"unexpected poll event {event!r}")
