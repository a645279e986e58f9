#!/usr/bin/env python
"""Hot-seat Werewolf session on a single terminal.

Usage:
    werewolf-engine                          # 7 players, default roles
    werewolf-engine --players 9 --seed 42    # reproducible role deal
    werewolf-engine --config rules.yaml      # custom settings
    werewolf-engine --save-dir saves/        # snapshot after every command

Type commands as ``<player> <command> [args...]``, for example:
    p3 action attack p5
    p1 nominate p4
    p2 second
    p6 vote guilty
    p1 advance
Player-less commands: ``status``, ``help``, ``quit``. Use ``p1 roles`` or
``p1 role_info seer`` to read the role descriptions.
"""

import argparse
import asyncio
import logging
import shlex
import sys
from typing import Optional

from rich.console import Console
from rich.table import Table

from werewolf_engine.commands import CommandRouter
from werewolf_engine.config import load_settings
from werewolf_engine.engine import SessionRepository
from werewolf_engine.models import Role
from werewolf_engine.notifications import ConsoleNotifier
from werewolf_engine.persistence import YamlDirectoryStore

GAME_ID = "local"

DEFAULT_ROLES = [Role.WEREWOLF, Role.WEREWOLF, Role.SEER, Role.BODYGUARD, Role.CUPID, Role.HUNTER]


def default_roles(player_count: int) -> list[Role]:
    """Two werewolves from nine players up, otherwise one."""
    roles = list(DEFAULT_ROLES)
    if player_count < 9:
        roles.remove(Role.WEREWOLF)
    return roles[:player_count]


def print_help(console: Console, router: CommandRouter) -> None:
    console.print("[bold]Commands:[/bold] " + ", ".join(router.commands))
    console.print("Night actions: attack, investigate, protect, dark_investigate, choose_lovers, hunter_revenge")


def print_status(console: Console, router: CommandRouter) -> None:
    game = router.sessions.get(GAME_ID)
    if game is None:
        console.print("[dim]No game running.[/dim]")
        return
    status = game.status()
    table = Table(title=f"{status.phase.value} (round {status.round})")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Alive")
    for player in game.state.players.values():
        table.add_row(player.id, player.username, "yes" if player.is_alive else "no")
    console.print(table)


async def setup_game(router: CommandRouter, player_count: int, seed: Optional[int]) -> None:
    creator = "p1"
    router.sessions.create(GAME_ID, creator, seed=seed)
    for i in range(1, player_count + 1):
        await router.dispatch(GAME_ID, "join", f"p{i}", f"Player {i}")
    for role in default_roles(player_count):
        await router.dispatch(GAME_ID, "add_role", creator, role.value)
    result = await router.dispatch(GAME_ID, "start", creator)
    if not result.ok:
        raise SystemExit(result.message)


async def run(args: argparse.Namespace) -> int:
    console = Console()
    settings = load_settings(args.config)
    store = YamlDirectoryStore(args.save_dir) if args.save_dir else None

    sessions: Optional[SessionRepository] = None

    def name_of(player_id: str) -> str:
        game = sessions.get(GAME_ID) if sessions else None
        return game.state.display_name(player_id) if game else player_id

    notifier = ConsoleNotifier(console=console, name_of=name_of, show_private=not args.hide_private)
    sessions = SessionRepository(settings=settings, notifier_factory=lambda _: notifier, store=store)
    router = CommandRouter(sessions)
    await setup_game(router, args.players, args.seed)

    print_help(console, router)
    while True:
        game = sessions.get(GAME_ID)
        if game is None or game.state.game_over:
            break
        try:
            line = await asyncio.to_thread(console.input, "[bold]> [/bold]")
        except (EOFError, KeyboardInterrupt):
            break
        words = shlex.split(line)
        if not words:
            continue
        if words[0] in ("quit", "exit"):
            break
        if words[0] == "help":
            print_help(console, router)
            continue
        if words[0] == "status":
            print_status(console, router)
            continue
        if len(words) < 2:
            console.print("[yellow]Usage: <player> <command> [args...][/yellow]")
            continue
        result = await router.dispatch(GAME_ID, words[1], words[0], *words[2:])
        style = "green" if result.ok else "red"
        console.print(f"[{style}]{result.message}[/{style}]")

    if GAME_ID in sessions:
        await sessions.remove(GAME_ID)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Play Werewolf hot-seat in the terminal")
    parser.add_argument("--players", type=int, default=7, help="Number of players (default: 7)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for the role deal")
    parser.add_argument("--config", default=None, help="YAML settings file")
    parser.add_argument("--save-dir", default=None, help="Directory for session snapshots")
    parser.add_argument("--hide-private", action="store_true", help="Do not print private notices")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show engine logs")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
