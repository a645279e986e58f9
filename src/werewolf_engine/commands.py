"""CommandRouter - name-based entry point for a chat layer.

A chat integration parses its own command syntax and calls
``router.dispatch(game_id, command, user_id, *args)``. The router finds
the session, calls the matching WerewolfGame method, and turns the
outcome into a CommandResult the integration can render. GameErrors
become their user-facing message; anything else is logged with an
error id that is shown to the user so an operator can find the trace.
"""

import inspect
import logging
import uuid
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel

from werewolf_engine.engine import (
    ROLE_CATALOG,
    GameError,
    RoleCapability,
    SessionRepository,
    WerewolfGame,
    capability_for,
)
from werewolf_engine.engine.errors import InvalidAction, WrongPhase
from werewolf_engine.models import Faction

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[Any]]

GUILTY_WORDS = {"guilty", "yes", "y", "true", "kill"}
INNOCENT_WORDS = {"innocent", "no", "n", "false", "spare"}


class CommandResult(BaseModel):
    """What the chat layer should show the user."""

    ok: bool
    message: str = ""
    error: Optional[str] = None  # GameError code, or "internal"
    data: Any = None


def parse_verdict(word: str) -> bool:
    word = word.strip().lower()
    if word in GUILTY_WORDS:
        return True
    if word in INNOCENT_WORDS:
        return False
    raise InvalidAction(f"Unparseable verdict {word!r}", "Vote 'guilty' or 'innocent'.")


class CommandRouter:
    """Routes command names to session operations."""

    def __init__(self, sessions: SessionRepository):
        self.sessions = sessions
        self._handlers: dict[str, Handler] = {
            "create": self._create,
            "join": self._join,
            "add_role": self._add_role,
            "remove_role": self._remove_role,
            "start": self._start,
            "action": self._action,
            "nominate": self._nominate,
            "second": self._second,
            "vote": self._vote,
            "process_votes": self._process_votes,
            "advance": self._advance,
            "end": self._end,
            "targets": self._targets,
            "status": self._status,
            "roles": self._roles,
            "role_info": self._role_info,
        }

    @property
    def commands(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(self, game_id: str, command: str, user_id: str, *args: str) -> CommandResult:
        handler = self._handlers.get(command)
        if handler is None:
            return CommandResult(ok=False, message=f"Unknown command: {command}", error="unknown_command")
        try:
            inspect.signature(handler).bind(game_id, user_id, *args)
        except TypeError:
            return CommandResult(ok=False, message=f"Wrong arguments for {command}.", error="bad_arguments")
        try:
            return await handler(game_id, user_id, *args)
        except GameError as e:
            return CommandResult(ok=False, message=e.user_message, error=e.code)
        except Exception:
            error_id = uuid.uuid4().hex[:8]
            logger.exception("Command %s failed in game %s (error id %s)", command, game_id, error_id)
            return CommandResult(
                ok=False,
                message=f"Something went wrong. Error id: {error_id}",
                error="internal",
            )

    def _game(self, game_id: str) -> WerewolfGame:
        game = self.sessions.get(game_id)
        if game is None:
            raise WrongPhase(f"No game {game_id}", "There is no game running here.")
        return game

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _create(self, game_id: str, user_id: str, username: Optional[str] = None) -> CommandResult:
        game = self.sessions.create(game_id, user_id)
        if username:
            await game.add_player(user_id, username)
        return CommandResult(ok=True, message="Game created. Players can now join.")

    async def _join(self, game_id: str, user_id: str, username: str) -> CommandResult:
        await self._game(game_id).add_player(user_id, username)
        return CommandResult(ok=True, message=f"{username} joined.")

    async def _add_role(self, game_id: str, user_id: str, role: str, count: str = "1") -> CommandResult:
        roles = await self._game(game_id).add_role(user_id, role, _parse_count(count))
        return CommandResult(ok=True, message=f"Roles: {_format_roles(roles)}", data=roles)

    async def _remove_role(self, game_id: str, user_id: str, role: str, count: str = "1") -> CommandResult:
        roles = await self._game(game_id).remove_role(user_id, role, _parse_count(count))
        return CommandResult(ok=True, message=f"Roles: {_format_roles(roles)}", data=roles)

    async def _start(self, game_id: str, user_id: str) -> CommandResult:
        await self._game(game_id).start_game(user_id)
        return CommandResult(ok=True, message="The game has started. Check your role.")

    async def _action(
        self, game_id: str, user_id: str, action: str, target_id: str, second_target_id: Optional[str] = None,
    ) -> CommandResult:
        result = await self._game(game_id).submit_night_action(user_id, action, target_id, second_target_id)
        if result is not None and result.duplicate:
            return CommandResult(ok=True, message="Action already recorded.", data=result)
        return CommandResult(ok=True, message="Action recorded.", data=result)

    async def _nominate(self, game_id: str, user_id: str, target_id: str) -> CommandResult:
        await self._game(game_id).nominate(user_id, target_id)
        return CommandResult(ok=True, message="Nomination made.")

    async def _second(self, game_id: str, user_id: str) -> CommandResult:
        await self._game(game_id).second(user_id)
        return CommandResult(ok=True, message="Nomination seconded. Voting is open.")

    async def _vote(self, game_id: str, user_id: str, verdict: str) -> CommandResult:
        result = await self._game(game_id).submit_vote(user_id, parse_verdict(verdict))
        return CommandResult(ok=True, message="Vote recorded.", data=result)

    async def _process_votes(self, game_id: str, user_id: str) -> CommandResult:
        result = await self._game(game_id).process_votes(user_id)
        return CommandResult(ok=True, message=f"Votes counted: {result.guilty}-{result.innocent}.", data=result)

    async def _advance(self, game_id: str, user_id: str) -> CommandResult:
        phase = await self._game(game_id).advance_phase(user_id)
        return CommandResult(ok=True, message=f"Phase is now {phase.value}.", data=phase)

    async def _end(self, game_id: str, user_id: str) -> CommandResult:
        summary = await self._game(game_id).end_game(user_id)
        await self.sessions.remove(game_id)
        return CommandResult(ok=True, message=summary.describe(), data=summary)

    async def _targets(self, game_id: str, user_id: str, action: str) -> CommandResult:
        options = self._game(game_id).list_valid_targets(user_id, action)
        names = ", ".join(f"{o.display_name} ({o.id})" for o in options) or "none"
        return CommandResult(ok=True, message=f"Targets: {names}", data=options)

    async def _status(self, game_id: str, user_id: str) -> CommandResult:
        status = self._game(game_id).status()
        return CommandResult(ok=True, message=f"{status.phase.value}, round {status.round}", data=status)

    async def _roles(self, game_id: str, user_id: str) -> CommandResult:
        lines = [_describe_role(capability) for capability in ROLE_CATALOG.values()]
        return CommandResult(ok=True, message="\n".join(lines), data=list(ROLE_CATALOG))

    async def _role_info(self, game_id: str, user_id: str, role: str) -> CommandResult:
        capability = capability_for(WerewolfGame._coerce_role(role))
        return CommandResult(ok=True, message=_describe_role(capability), data=capability)


def _parse_count(count: str) -> int:
    try:
        return int(count)
    except ValueError:
        raise InvalidAction(f"Bad count {count!r}", "The count must be a number.") from None


def _describe_role(capability: RoleCapability) -> str:
    team = "Werewolf team" if capability.faction == Faction.WEREWOLF else "Village"
    line = f"{capability.role.value.title()} ({team}): {capability.description}"
    if capability.action is not None:
        line += f" Action: {capability.action.value}."
    return line


def _format_roles(roles: dict) -> str:
    if not roles:
        return "none"
    return ", ".join(f"{role.value.title()} x{count}" for role, count in roles.items())
