"""Tests for VoteResolver: nomination, second, ballots and tally."""

import pytest

from werewolf_engine.config import GameSettings, TiePolicy
from werewolf_engine.engine.errors import DeadPlayer, InvalidAction, InvalidTarget, NotAuthorized, WrongPhase
from werewolf_engine.events import NominationExpired, Phase, VoteOutcome
from werewolf_engine.models import Role

from helpers import Components, make_state

SIX = [Role.WEREWOLF, Role.SEER, Role.VILLAGER, Role.VILLAGER, Role.VILLAGER, Role.VILLAGER]


async def open_vote(comp: Components, nominee: str = "p1", nominator: str = "p2", seconder: str = "p3") -> None:
    """Nominate and second, moving the phase by hand."""
    await comp.votes.nominate(nominator, nominee)
    comp.state.phase = Phase.NOMINATION
    await comp.votes.second(seconder)
    comp.state.phase = Phase.VOTING


class TestNominate:
    """Tests for nominations."""

    @pytest.mark.asyncio
    async def test_nominate(self):
        """Test that a nomination is recorded and announced."""
        comp = Components(make_state(SIX))
        await comp.votes.nominate("p2", "p1")
        assert comp.state.nomination.nominee_id == "p1"
        assert comp.state.nomination.nominator_id == "p2"
        assert not comp.state.nomination.is_open
        assert "Bob nominated Alice" in comp.notifier.broadcasts[-1].body

    @pytest.mark.asyncio
    async def test_nominate_checks(self):
        """Test the nomination preconditions."""
        comp = Components(make_state(SIX))
        comp.state.players["p6"].is_alive = False

        with pytest.raises(NotAuthorized):
            await comp.votes.nominate("ghost", "p1")
        with pytest.raises(DeadPlayer):
            await comp.votes.nominate("p6", "p1")
        with pytest.raises(InvalidTarget):
            await comp.votes.nominate("p2", "p6")
        with pytest.raises(InvalidTarget):
            await comp.votes.nominate("p2", "p2")
        with pytest.raises(InvalidTarget):
            await comp.votes.nominate("p2", "ghost")

    @pytest.mark.asyncio
    async def test_nominate_outside_day(self):
        """Test that nominations need the DAY phase."""
        comp = Components(make_state(SIX, phase=Phase.NIGHT))
        with pytest.raises(WrongPhase):
            await comp.votes.nominate("p2", "p1")

    @pytest.mark.asyncio
    async def test_one_nomination_at_a_time(self):
        """Test that a pending nomination blocks another."""
        comp = Components(make_state(SIX))
        await comp.votes.nominate("p2", "p1")
        with pytest.raises(InvalidAction):
            await comp.votes.nominate("p3", "p4")


class TestSecond:
    """Tests for seconding."""

    @pytest.mark.asyncio
    async def test_second_opens_voting(self):
        """Test that a second opens the ballot."""
        comp = Components(make_state(SIX))
        await comp.votes.nominate("p2", "p1")
        comp.state.phase = Phase.NOMINATION
        await comp.votes.second("p3")
        assert comp.state.nomination.is_open
        assert comp.state.nomination.seconder_id == "p3"

    @pytest.mark.asyncio
    async def test_nominee_and_nominator_cannot_second(self):
        """Test who may not second."""
        comp = Components(make_state(SIX))
        await comp.votes.nominate("p2", "p1")
        comp.state.phase = Phase.NOMINATION
        with pytest.raises(InvalidAction):
            await comp.votes.second("p1")
        with pytest.raises(InvalidAction):
            await comp.votes.second("p2")

    @pytest.mark.asyncio
    async def test_expired_nomination_is_cleared(self):
        """Nobody seconded: every nomination field resets."""
        comp = Components(make_state(SIX))
        await comp.votes.nominate("p2", "p1")
        comp.state.phase = Phase.NOMINATION
        assert await comp.votes.expire_nomination() == "p1"
        assert comp.state.nomination.is_empty
        assert comp.events_of(NominationExpired)[0].nominee == "p1"


class TestBallots:
    """Tests for voting and the tally."""

    @pytest.mark.asyncio
    async def test_later_ballot_overwrites(self):
        """Test that a voter may change their ballot."""
        comp = Components(make_state(SIX))
        await open_vote(comp)
        await comp.votes.submit_vote("p4", True)
        await comp.votes.submit_vote("p4", False)
        assert comp.state.nomination.votes == {"p4": False}
        assert comp.notifier.to("p4")[-1].title == "Vote changed"

    @pytest.mark.asyncio
    async def test_nominee_cannot_vote(self):
        """Test that the nominee sits out their own vote."""
        comp = Components(make_state(SIX))
        await open_vote(comp)
        with pytest.raises(InvalidAction):
            await comp.votes.submit_vote("p1", False)
        assert "p1" not in comp.votes.eligible_voters()

    @pytest.mark.asyncio
    async def test_dead_cannot_vote(self):
        """Test that the dead have no ballot."""
        comp = Components(make_state(SIX))
        await open_vote(comp)
        comp.state.players["p6"].is_alive = False
        with pytest.raises(DeadPlayer):
            await comp.votes.submit_vote("p6", True)

    @pytest.mark.asyncio
    async def test_vote_outside_voting(self):
        """Test that ballots need the VOTING phase."""
        comp = Components(make_state(SIX))
        with pytest.raises(WrongPhase):
            await comp.votes.submit_vote("p2", True)

    @pytest.mark.asyncio
    async def test_all_voted(self):
        """Test completion tracking over eligible voters."""
        comp = Components(make_state(SIX))
        await open_vote(comp)
        for voter in ("p2", "p3", "p4", "p5"):
            await comp.votes.submit_vote(voter, True)
        assert not comp.votes.all_voted()
        await comp.votes.submit_vote("p6", False)
        assert comp.votes.all_voted()
        assert comp.votes.tally() == (4, 1)

    @pytest.mark.asyncio
    async def test_guilty_majority_eliminates(self):
        """Test elimination on a guilty majority."""
        comp = Components(make_state(SIX))
        await open_vote(comp)
        for voter, guilty in (("p2", True), ("p3", True), ("p4", False)):
            await comp.votes.submit_vote(voter, guilty)

        result = await comp.votes.process_votes()

        assert result.eliminated
        assert result.deaths == ["p1"]
        assert (result.guilty, result.innocent) == (2, 1)
        assert comp.state.nomination.is_empty
        assert comp.events_of(VoteOutcome)[0].eliminated

    @pytest.mark.asyncio
    async def test_tie_survives_by_default(self):
        """Test that ties favour survival."""
        comp = Components(make_state(SIX))
        await open_vote(comp)
        await comp.votes.submit_vote("p2", True)
        await comp.votes.submit_vote("p3", False)
        result = await comp.votes.process_votes()
        assert not result.eliminated
        assert comp.state.players["p1"].is_alive

    @pytest.mark.asyncio
    async def test_tie_eliminates_when_configured(self):
        """Test the eliminate tie policy."""
        comp = Components(make_state(SIX), settings=GameSettings(tie_policy=TiePolicy.ELIMINATE))
        await open_vote(comp)
        await comp.votes.submit_vote("p2", True)
        await comp.votes.submit_vote("p3", False)
        assert (await comp.votes.process_votes()).eliminated

    @pytest.mark.asyncio
    async def test_no_ballots_spares_nominee(self):
        """Test that an empty vote never eliminates."""
        comp = Components(make_state(SIX), settings=GameSettings(tie_policy=TiePolicy.ELIMINATE))
        await open_vote(comp)
        assert not (await comp.votes.process_votes()).eliminated

    @pytest.mark.asyncio
    async def test_ballots_of_the_dead_are_not_counted(self):
        """Test that a voter who died mid-vote no longer counts."""
        comp = Components(make_state(SIX))
        await open_vote(comp)
        await comp.votes.submit_vote("p2", True)
        await comp.votes.submit_vote("p3", False)
        await comp.votes.submit_vote("p4", False)
        comp.state.players["p4"].is_alive = False
        assert comp.votes.tally() == (1, 1)
