"""
Table actor: owns the live MatchState, applies commands one at a time,
and drives bot turns and turn timeouts through a virtual-clock scheduler.

Timers are keyed on the turn (round, seat, phase); a timer that fires after
its turn has moved on does nothing. A single in-flight flag drops triggers
that arrive while another command is being applied (e.g. a subscriber that
calls back into the table).
"""
from __future__ import annotations

import heapq
import itertools
import logging
import random
from typing import Callable, List, Sequence, Tuple

from .bot import play_bot_turn
from .config import MatchConfig
from .errors import Rejection, RuleViolation
from .events import GameEvent
from .game import (
    CancelStaged,
    Command,
    ConfirmOpening,
    Discard,
    DrawCard,
    ProcessOntoMeld,
    StageMeld,
    TimeoutAdvance,
    Transition,
    apply,
    next_round,
    start_match,
)
from .state import DrawSource, MatchState, Phase

logger = logging.getLogger(__name__)

TurnKey = Tuple[int, int, Phase]


class TimerHandle:
    """One scheduled call; ``cancel()`` makes it a no-op."""

    __slots__ = ("when", "callback", "cancelled")

    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class TurnScheduler:
    """
    Single-threaded queue of one-shot tasks on a virtual clock.

    Nothing runs until ``advance(dt)`` moves the clock; tasks due by then run
    in time order (ties in scheduling order).
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._queue: List[Tuple[float, int, TimerHandle]] = []
        self._counter = itertools.count()

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        handle = TimerHandle(self._now + delay, callback)
        heapq.heappush(self._queue, (handle.when, next(self._counter), handle))
        return handle

    def advance(self, dt: float) -> int:
        """Move the clock forward by ``dt`` seconds; returns the number of tasks run."""
        target = self._now + dt
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = when
            handle.callback()
            ran += 1
        self._now = target
        return ran


class Table:
    """
    A match at a table: human commands go through the methods below (seat
    defaults to the first human seat), bots and timeouts are scheduled.

    Usage:
        table = Table(MatchConfig(), rng=random.Random(7))
        table.subscribe(render)
        table.start_match()
        table.draw_card()
        table.scheduler.advance(1.0)
    """

    def __init__(
        self,
        config: MatchConfig | None = None,
        scheduler: TurnScheduler | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or MatchConfig()
        self.scheduler = scheduler or TurnScheduler()
        self.rng = rng or random.Random()
        self.human_seat = next((s for s in range(len(self.config.seat_names)) if not self.config.is_bot(s)), 0)
        self.last_rejection: Rejection | None = None

        self._state: MatchState | None = None
        self._subscribers: List[Callable[[MatchState], None]] = []
        self._listeners: List[Callable[[GameEvent], None]] = []
        self._turn_key: TurnKey | None = None
        self._timers: List[TimerHandle] = []
        self._in_flight = False

    # ---- Observers ----

    @property
    def state(self) -> MatchState:
        if self._state is None:
            raise RuntimeError("No match in progress")
        return self._state

    @property
    def has_match(self) -> bool:
        return self._state is not None

    def subscribe(self, callback: Callable[[MatchState], None]) -> Callable[[], None]:
        """Receive every new MatchState; returns an unsubscribe function."""
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback)

    def add_event_listener(self, callback: Callable[[GameEvent], None]) -> None:
        self._listeners.append(callback)

    # ---- Match lifecycle ----

    def start_match(self, resume: bool = False) -> Transition:
        """
        Start a fresh match, or with ``resume`` continue the current one into its
        next round keeping scores, chips and pots.
        """
        previous = self._state if resume else None
        return self._run(lambda: start_match(self.config, self.rng, resume_from=previous))

    def next_round(self) -> Transition:
        return self._run(lambda: next_round(self.state, self.rng))

    def abandon(self) -> None:
        """Stop the match: pending bot and timeout tasks are cancelled."""
        self._cancel_timers()
        self._turn_key = None
        self._state = None
        logger.info("Match abandoned")

    # ---- Commands ----

    def draw_card(self, source: DrawSource = DrawSource.DECK, seat: int | None = None) -> Transition:
        return self.submit(DrawCard(seat=self._seat(seat), source=source))

    def stage_or_commit_meld(self, card_ids: Sequence[int], seat: int | None = None) -> Transition:
        return self.submit(StageMeld(seat=self._seat(seat), card_ids=tuple(card_ids)))

    def confirm_opening(self, seat: int | None = None) -> Transition:
        return self.submit(ConfirmOpening(seat=self._seat(seat)))

    def cancel_staged_melds(self, seat: int | None = None) -> Transition:
        return self.submit(CancelStaged(seat=self._seat(seat)))

    def attempt_discard(self, card_id: int, seat: int | None = None) -> Transition:
        return self.submit(Discard(seat=self._seat(seat), card_id=card_id))

    def process_onto_meld(self, meld_id: int, card_ids: Sequence[int], seat: int | None = None) -> Transition:
        return self.submit(ProcessOntoMeld(seat=self._seat(seat), meld_id=meld_id, card_ids=tuple(card_ids)))

    def advance_on_timeout(self) -> Transition:
        return self.submit(TimeoutAdvance())

    def submit(self, command: Command) -> Transition:
        return self._run(lambda: apply(self.state, command, self.rng))

    # ---- Internals ----

    def _seat(self, seat: int | None) -> int:
        return self.human_seat if seat is None else seat

    def _run(self, step: Callable[[], Transition]) -> Transition:
        if self._in_flight:
            logger.debug("Dropped a re-entrant table action")
            return Transition(
                state=self._state,  # type: ignore[arg-type]
                rejection=Rejection(RuleViolation.WRONG_PHASE, "toast.wrong_phase", "another action is in progress"),
            )
        self._in_flight = True
        try:
            result = step()
            if result.ok:
                self.last_rejection = None
                self._publish(result)
            else:
                self.last_rejection = result.rejection
        finally:
            self._in_flight = False
        self._reschedule()
        return result

    def _publish(self, result: Transition) -> None:
        self._state = result.state
        for event in result.events:
            for listener in list(self._listeners):
                listener(event)
        for subscriber in list(self._subscribers):
            subscriber(result.state)

    def _cancel_timers(self) -> None:
        for handle in self._timers:
            handle.cancel()
        self._timers = []

    def _reschedule(self) -> None:
        state = self._state
        if state is None or state.phase not in (Phase.DRAW, Phase.ACTION):
            self._cancel_timers()
            self._turn_key = None
            return
        key: TurnKey = (state.round_number, state.active_seat, state.phase)
        if key == self._turn_key:
            return
        self._cancel_timers()
        self._turn_key = key
        self._timers.append(self.scheduler.call_later(self.config.turn_duration, lambda: self._on_timeout(key)))
        if state.active_player.is_bot:
            self._timers.append(self.scheduler.call_later(self.config.bot_think_delay, lambda: self._on_bot_turn(key)))

    def _on_timeout(self, key: TurnKey) -> None:
        if key != self._turn_key:
            return
        logger.info("Turn timed out for seat %d (%s)", key[1], key[2].value)
        self._run(lambda: apply(self.state, TimeoutAdvance(), self.rng))

    def _on_bot_turn(self, key: TurnKey) -> None:
        if key != self._turn_key:
            return
        self._run(lambda: play_bot_turn(self.state, self.rng))
