"""Tests for PhaseStateMachine: transitions, day/night flow and timers."""

import pytest

from werewolf_engine.config import GameSettings
from werewolf_engine.engine.errors import PhaseTransitionError, WrongPhase
from werewolf_engine.engine.phase_machine import (
    LAST_STAND_TIMER,
    NIGHT_TIMER,
    NIGHT_ZERO_TIMER,
    NOMINATION_TIMER,
    TRANSITIONS,
)
from werewolf_engine.events import ActionType, DeathCause, GameOver, Phase, PhaseChanged
from werewolf_engine.models import Faction, Role
from werewolf_engine.notifications import NoticeKind

from helpers import Components, make_game, make_state, to_night


class TestTransitions:
    """Tests for the transition table."""

    def test_game_over_is_terminal(self):
        """Test that nothing leaves GAME_OVER."""
        assert TRANSITIONS[Phase.GAME_OVER] == frozenset()

    @pytest.mark.asyncio
    async def test_legal_transition_bumps_epoch(self):
        """Test that a transition records an event and a new epoch."""
        comp = Components(make_state([Role.WEREWOLF, Role.VILLAGER, Role.VILLAGER]))
        epoch = comp.state.phase_epoch
        await comp.machine.transition(Phase.NOMINATION)
        assert comp.state.phase == Phase.NOMINATION
        assert comp.state.phase_epoch == epoch + 1
        event = comp.events_of(PhaseChanged)[0]
        assert (event.from_phase, event.to_phase) == (Phase.DAY, Phase.NOMINATION)

    @pytest.mark.asyncio
    async def test_illegal_transition(self):
        """Test that skipping the nomination step is refused."""
        comp = Components(make_state([Role.WEREWOLF, Role.VILLAGER, Role.VILLAGER]))
        with pytest.raises(PhaseTransitionError):
            await comp.machine.transition(Phase.VOTING)
        assert comp.state.phase == Phase.DAY

    @pytest.mark.asyncio
    async def test_day_announcement_lists_the_living(self):
        """Test the dawn broadcast."""
        comp = Components(make_state([Role.WEREWOLF, Role.VILLAGER, Role.VILLAGER], phase=Phase.NIGHT))
        comp.state.players["p2"].is_alive = False
        await comp.machine.enter_day()
        notice = comp.notifier.of_kind(NoticeKind.PHASE)[-1]
        assert notice.fields["Alive"] == "Alice, Carol"


class TestNightFlow:
    """Tests for entering and ending nights."""

    @pytest.mark.asyncio
    async def test_enter_night_increments_round(self):
        """Test that each night starts a new round."""
        comp = Components(make_state([Role.WEREWOLF, Role.SEER, Role.VILLAGER, Role.VILLAGER], round=0))
        await comp.machine.enter_night()
        assert comp.state.phase == Phase.NIGHT
        assert comp.state.round == 1
        assert comp.state.night.expected == {"p1", "p2"}

    @pytest.mark.asyncio
    async def test_night_ends_when_everyone_acted(self):
        """Test that the last expected action resolves the night."""
        comp = Components(make_state([Role.WEREWOLF, Role.VILLAGER, Role.VILLAGER, Role.VILLAGER], round=0))
        await comp.machine.enter_night()
        await comp.machine.submit_night_action("p1", ActionType.ATTACK, "p2")
        assert comp.state.phase == Phase.DAY
        assert comp.state.round == 1
        assert not comp.state.players["p2"].is_alive

    @pytest.mark.asyncio
    async def test_night_with_nobody_to_act_resolves_immediately(self):
        """Test that a night nobody can act in passes straight to day."""
        comp = Components(make_state([Role.WEREWOLF, Role.VILLAGER, Role.VILLAGER, Role.VILLAGER], round=0))
        comp.state.players["p1"].role = Role.MINION  # werewolf faction, but no attack
        await comp.machine.enter_night()
        assert comp.state.phase == Phase.DAY

    @pytest.mark.asyncio
    async def test_night_actions_blocked_during_last_stand(self):
        """Test that a pending last stand suspends the night."""
        comp = Components(make_state([Role.WEREWOLF, Role.HUNTER, Role.SEER, Role.VILLAGER, Role.VILLAGER], round=0))
        await comp.machine.enter_night()
        comp.state.pending_last_stand_actor_id = "p2"
        with pytest.raises(WrongPhase):
            await comp.machine.submit_night_action("p3", ActionType.INVESTIGATE, "p1")


class TestWinCheck:
    """Tests for the end of the game."""

    @pytest.mark.asyncio
    async def test_no_win_check_in_setup(self):
        """Test that the lobby and Night Zero never end the game."""
        comp = Components(make_state([Role.VILLAGER, Role.VILLAGER], phase=Phase.LOBBY))
        assert not await comp.machine.check_winner()

    @pytest.mark.asyncio
    async def test_finish_game(self):
        """Test the game-over bookkeeping and broadcast."""
        comp = Components(make_state([Role.WEREWOLF, Role.VILLAGER, Role.VILLAGER]))
        await comp.deaths.kill("p1", DeathCause.VOTE)
        assert await comp.machine.check_winner()

        assert comp.state.game_over
        assert comp.state.phase == Phase.GAME_OVER
        assert comp.state.winning_faction == Faction.VILLAGE
        assert comp.state.ended_at is not None
        event = comp.events_of(GameOver)[0]
        assert event.winners == ["p2", "p3"]
        notice = comp.notifier.of_kind(NoticeKind.GAME_OVER)[0]
        assert notice.fields["Alice"] == "Werewolf"
        assert notice.fields["Winners"] == "Bob, Carol"


class TestTimers:
    """Tests for state-derived timers."""

    def test_wanted_timers_by_phase(self):
        """Test which timeout each phase needs."""
        settings = GameSettings(nomination_timeout=30)
        comp = Components(make_state([Role.WEREWOLF, Role.CUPID, Role.VILLAGER]), settings=settings)
        state = comp.state

        assert comp.machine.wanted_timers() == {}
        state.phase = Phase.NOMINATION
        assert comp.machine.wanted_timers() == {NOMINATION_TIMER: (30, (state.phase_epoch,))}
        state.phase = Phase.NIGHT
        assert set(comp.machine.wanted_timers()) == {NIGHT_TIMER}
        state.phase = Phase.NIGHT_ZERO
        assert comp.machine.wanted_timers() == {}
        state.night.expected = {"p2"}
        assert set(comp.machine.wanted_timers()) == {NIGHT_ZERO_TIMER}
        state.pending_last_stand_actor_id = "p1"
        assert set(comp.machine.wanted_timers()) == {LAST_STAND_TIMER}
        state.game_over = True
        assert comp.machine.wanted_timers() == {}

    @pytest.mark.asyncio
    async def test_sync_schedules_and_cancels(self):
        """Test that the registry follows the state."""
        comp = Components(make_state([Role.WEREWOLF, Role.VILLAGER, Role.VILLAGER, Role.VILLAGER]))
        fired = []

        async def dispatch(name, token):
            fired.append((name, token))

        comp.state.phase = Phase.NOMINATION
        comp.machine.sync_timers(dispatch)
        assert comp.timers.active_names() == {NOMINATION_TIMER}

        comp.state.phase = Phase.VOTING
        comp.machine.sync_timers(dispatch)
        assert comp.timers.active_names() == set()

        await comp.timers.advance(1000)
        assert fired == []

    @pytest.mark.asyncio
    async def test_new_epoch_replaces_timer(self):
        """Test that a new phase visit gets a fresh token."""
        comp = Components(make_state([Role.WEREWOLF, Role.VILLAGER, Role.VILLAGER, Role.VILLAGER]))

        async def dispatch(name, token):
            return None

        comp.state.phase = Phase.NOMINATION
        comp.machine.sync_timers(dispatch)
        old_token = comp.timers.get(NOMINATION_TIMER).token
        comp.state.phase_epoch += 2
        comp.machine.sync_timers(dispatch)

        assert comp.timers.get(NOMINATION_TIMER).token != old_token
        assert not comp.machine.is_current(NOMINATION_TIMER, old_token)
        assert comp.machine.is_current(NOMINATION_TIMER, (comp.state.phase_epoch,))

    @pytest.mark.asyncio
    async def test_unknown_timer(self):
        """Test that an unknown timer name is a programming error."""
        comp = Components(make_state([Role.WEREWOLF, Role.VILLAGER]))
        with pytest.raises(ValueError):
            await comp.machine.on_timeout("sunrise")


class TestSessionTimeouts:
    """Timeouts driven through a whole session on virtual time."""

    @pytest.mark.asyncio
    async def test_night_zero_timeout_forfeits_cupid(self):
        """Test that an idle Cupid does not hold the game."""
        game, notifier, timers = await make_game([Role.WEREWOLF, Role.CUPID])
        assert game.phase == Phase.NIGHT_ZERO
        await timers.advance(600)
        assert game.phase == Phase.DAY
        assert game.state.lovers == {}

    @pytest.mark.asyncio
    async def test_night_timeout_resolves_what_was_submitted(self):
        """Test that the night ends on time with partial submissions."""
        game, notifier, timers = await make_game([Role.WEREWOLF, Role.SEER, Role.BODYGUARD])
        await to_night(game)
        await game.submit_night_action("p1", "attack", "p5")

        await timers.advance(599)
        assert game.phase == Phase.NIGHT
        await timers.advance(1)

        assert game.phase == Phase.DAY
        assert not game.state.players["p5"].is_alive
        assert any(n.title == "Time is up" for n in notifier.broadcasts)
