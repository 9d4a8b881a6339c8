"""
Score a match from the terminal. Each command is a token: 1 or 2 gives the
point to that player, u undoes the last point, c cancels the match. The live
score, server and phase are printed after every command.

  python -m scorekeeper.run_match --mode "Standard 11" --server 1 1 1 2 u 2 ...
  python -m scorekeeper.run_match --interactive
"""
from __future__ import annotations

import argparse
import logging
import sys

from scorekeeper.engine import PlayerSlot
from scorekeeper.models import Match
from scorekeeper.persistence import GameModeRepository, PlayerRepository
from scorekeeper.services import MatchController

_TOKENS = {"1": PlayerSlot.P1, "2": PlayerSlot.P2}


def _print_state(match: Match, name_1: str, name_2: str) -> None:
    serving = name_1 if match.server is PlayerSlot.P1 else name_2 if match.server else "-"
    line = f"  {name_1} {match.score_p1} - {match.score_p2} {name_2}   serve: {serving}   [{match.phase.value}]"
    if match.winner_id:
        winner = name_1 if match.winner_id == match.player1_id else name_2
        line += f"   WINNER: {winner}"
    print(line)


def apply_token(controller: MatchController, match: Match, token: str) -> None:
    token = token.strip().lower()
    if token in _TOKENS:
        controller.add_point(match, _TOKENS[token])
    elif token == "u":
        controller.undo_last_point(match)
    elif token == "c":
        controller.cancel_match(match)
    else:
        raise ValueError(f"Unknown command: {token!r} (use 1, 2, u or c)")


def run(
    tokens: list[str],
    mode_name: str = "Standard 11",
    first_server: str = "1",
    name_1: str = "Player 1",
    name_2: str = "Player 2",
    interactive: bool = False,
) -> Match:
    modes = GameModeRepository()
    modes.seed_defaults()
    mode = modes.get_by_name(mode_name)
    if mode is None:
        available = ", ".join(m.name for m in modes.list_all())
        raise SystemExit(f"Unknown game mode {mode_name!r}. Available: {available}")

    players = PlayerRepository()
    p1 = players.create(name_1)
    p2 = players.create(name_2)
    controller = MatchController()
    match = controller.start_match(p1.id, p2.id, game_mode=mode, first_server=_TOKENS[first_server])

    rules = match.rule_set
    print(f"{mode.name}: to {rules.points_to_win}, {rules.serves_before_change} serves each"
          f"{', deuce' if rules.deuce_enabled else ''}")
    _print_state(match, name_1, name_2)

    def feed():
        yield from tokens
        if interactive:
            while True:
                try:
                    line = input("> ")
                except EOFError:
                    return
                if line.strip().lower() in ("q", "quit"):
                    return
                yield from line.split()

    for token in feed():
        try:
            apply_token(controller, match, token)
        except ValueError as e:
            print(f"  ! {e}")
            continue
        _print_state(match, name_1, name_2)

    stats_1 = controller.statistics.get(p1.id)
    stats_2 = controller.statistics.get(p2.id)
    print(f"Final: {match.status.value}   {name_1} wins {stats_1.wins}/{stats_1.matches_played}"
          f"   {name_2} wins {stats_2.wins}/{stats_2.matches_played}")
    return match


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Score a table tennis match in the terminal")
    parser.add_argument("tokens", nargs="*", help="1, 2, u (undo) or c (cancel)")
    parser.add_argument("--mode", default="Standard 11", help="Game mode name")
    parser.add_argument("--server", choices=["1", "2"], default="1", help="First server")
    parser.add_argument("--p1", default="Player 1", help="Name of player 1")
    parser.add_argument("--p2", default="Player 2", help="Name of player 2")
    parser.add_argument("--interactive", action="store_true", help="Read further commands from stdin")
    parser.add_argument("--verbose", action="store_true", help="Log controller activity")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    try:
        run(args.tokens, args.mode, args.server, args.p1, args.p2, interactive=args.interactive)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
