"""EventCollector - accumulates engine events into the session event log."""

from typing import Callable, Optional, TYPE_CHECKING

from werewolf_engine.events import GameEvent, GameEventLog

if TYPE_CHECKING:
    from werewolf_engine.engine.game_state import GameState


class EventCollector:
    """Collects events from the resolvers into a flat, ordered log.

    The collector is bound to the session's GameState and stamps each event
    with the current round and phase unless the event already carries them.
    Events belong to the transaction that produced them: a rollback
    truncates the log back to the length captured in the snapshot.

    Usage:
        collector = EventCollector(game_id="g1")
        collector.bind(state)
        collector.add_event(Nomination(actor="a", target="b"))
        event_log = collector.get_event_log()

    The collector supports an optional callback that fires after each event:
        collector = EventCollector(game_id="g1", on_event=my_callback)
    An exception raised by the callback propagates to the operation that
    added the event.
    """

    def __init__(
        self,
        game_id: str,
        on_event: Optional[Callable[[GameEvent], None]] = None,
    ):
        self._game_id = game_id
        self._events: list[GameEvent] = []
        self._state: Optional["GameState"] = None
        self._on_event = on_event

    def bind(self, state: "GameState") -> None:
        """Stamp future events from this state."""
        self._state = state

    def add_event(self, event: GameEvent) -> None:
        if self._state is not None:
            if event.phase is None:
                event.phase = self._state.phase
            if event.round == 0:
                event.round = self._state.round

        self._events.append(event)

        if self._on_event is not None:
            self._on_event(event)

    def __len__(self) -> int:
        return len(self._events)

    def truncate(self, length: int) -> None:
        """Drop every event recorded after the first ``length`` events."""
        del self._events[length:]

    def get_events(self) -> list[GameEvent]:
        return list(self._events)

    def get_event_log(self) -> GameEventLog:
        player_count = len(self._state.players) if self._state is not None else 0
        return GameEventLog(
            game_id=self._game_id,
            player_count=player_count,
            events=list(self._events),
        )
