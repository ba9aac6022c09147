"""
Casino CLI - Command-line interface for the engine.

Usage:
    casino deal [--seed N]                      Print a freshly dealt game as JSON
    casino simulate [--games N] [--seed N]      Play bot-vs-bot games
    casino serve [--host H] [--port P]          Run the API server
"""

import argparse
import json
import logging
import sys

from .config import configure_logging, get_settings


logger = logging.getLogger(__name__)

POLICIES = ("random", "first", "greedy")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Casino - Two-player Casino card game engine",
        prog="casino",
    )
    parser.add_argument("--log-level", help="Logging level (default from CASINO_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Deal command
    deal_parser = subparsers.add_parser("deal", help="Print an initial game state")
    deal_parser.add_argument("--seed", type=int, help="Shuffle seed")

    # Simulate command
    simulate_parser = subparsers.add_parser("simulate", help="Play bot-vs-bot games")
    simulate_parser.add_argument("--games", type=int, default=1, help="Number of games")
    simulate_parser.add_argument("--seed", type=int, help="Base seed for deals and bots")
    simulate_parser.add_argument(
        "--policy", nargs=2, choices=POLICIES, default=["greedy", "random"],
        metavar=("P0", "P1"), help=f"Policy per seat: {', '.join(POLICIES)}",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", help="Bind address (default from CASINO_HOST)")
    serve_parser.add_argument("--port", type=int, help="Bind port (default from CASINO_PORT)")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "deal":
        cmd_deal(args)
    elif args.command == "simulate":
        cmd_simulate(args)
    elif args.command == "serve":
        cmd_serve(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_deal(args):
    """Print a freshly dealt game."""
    from .engine_core.state import initialize_game

    state = initialize_game(seed=args.seed)
    print(json.dumps(state.to_dict(), indent=2, ensure_ascii=False))


def make_policy(name: str, seed: int | None = None):
    from .bots import RandomPolicy, FirstLegalPolicy, GreedyPolicy

    if name == "random":
        return RandomPolicy(seed=seed)
    if name == "first":
        return FirstLegalPolicy()
    if name == "greedy":
        return GreedyPolicy()
    raise ValueError(f"Unknown policy: {name}")


def simulate_game(policies, seed: int | None = None, max_turns: int = 500) -> dict:
    """
    Play one game between two policies through a real session.

    Returns a summary: scores, winner, turns and whether play stalled.
    """
    from .session import SessionManager, GameLoop

    manager = SessionManager()
    session, _ = manager.create_session("Bot 0", seed=seed)
    manager.join_session(session.session_id, "Bot 1")
    loop = GameLoop(session)

    turns = 0
    stalled = False
    while not session.game_state.game_over and turns < max_turns:
        player = session.game_state.current_player
        result = loop.run_bot_turn(policies[player])
        if not result.success:
            logger.warning("Player %d has no playable action: %s", player, result.error)
            stalled = True
            break
        turns += 1
        if result.stuck:
            stalled = True
            break

    state = session.game_state
    return {
        "scores": list(state.scores),
        "winner": state.winner,
        "gameOver": state.game_over,
        "turns": turns,
        "rounds": state.round,
        "stalled": stalled,
        "scoreDetails": state.score_details,
    }


def cmd_simulate(args):
    """Play bot-vs-bot games and print results."""
    wins = [0, 0]
    ties = 0

    for game in range(args.games):
        seed = None if args.seed is None else args.seed + game
        policies = [
            make_policy(args.policy[0], seed),
            make_policy(args.policy[1], None if seed is None else seed + 1),
        ]
        summary = simulate_game(policies, seed=seed)

        if summary["winner"] is None:
            ties += 1
        else:
            wins[summary["winner"]] += 1

        outcome = "stalled" if summary["stalled"] else (
            "tie" if summary["winner"] is None else f"player {summary['winner']} wins"
        )
        print(
            f"Game {game + 1}: {summary['scores'][0]}-{summary['scores'][1]} "
            f"in {summary['turns']} turns ({outcome})"
        )

    print(f"\n{args.policy[0]} (P0): {wins[0]} wins")
    print(f"{args.policy[1]} (P1): {wins[1]} wins")
    print(f"Ties/stalls: {ties}")


def cmd_serve(args):
    """Run the API under uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "casino.api.app:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=not settings.is_production,
    )


if __name__ == "__main__":
    main()
