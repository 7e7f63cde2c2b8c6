"""
War Room CLI - Command-line interface for the engine.

Usage:
    warroom simulate               Play a computer-vs-computer match
    warroom layout                 Print a random deployment as JSON
    warroom rules                  Show the army table and action catalogue
    warroom serve                  Run the HTTP/WebSocket API
"""

import argparse
import json
import logging
import os
import sys


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="War Room - Stratego-like game engine",
        prog="warroom",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("WARROOM_LOG_LEVEL", "WARNING"),
        help="Logging level (default: $WARROOM_LOG_LEVEL or WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Simulate command
    simulate_parser = subparsers.add_parser("simulate", help="Play a computer-vs-computer match")
    simulate_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    simulate_parser.add_argument("--army", default=None, help="Army table (classic, demo)")
    simulate_parser.add_argument(
        "--policy", default="random", help="Policy for both seats (random, first, greedy)"
    )
    simulate_parser.add_argument("--max-moves", type=int, default=2000, help="Stop after this many moves")
    simulate_parser.add_argument("--json", action="store_true", help="Print the final snapshot as JSON")

    # Layout command
    layout_parser = subparsers.add_parser("layout", help="Print a random deployment as JSON")
    layout_parser.add_argument("--seat", type=int, default=0, choices=(0, 1), help="Seat (0 top, 1 bottom)")
    layout_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    layout_parser.add_argument("--army", default=None, help="Army table (classic, demo)")
    layout_parser.add_argument("--output", "-o", help="Write to file instead of stdout")

    # Rules command
    subparsers.add_parser("rules", help="Show the army table and action catalogue")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP/WebSocket API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true", help="Auto-reload on code changes")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "simulate":
        cmd_simulate(args)
    elif args.command == "layout":
        cmd_layout(args)
    elif args.command == "rules":
        cmd_rules(args)
    elif args.command == "serve":
        cmd_serve(args)
    else:
        parser.print_help()
        sys.exit(1)


def _config(army_name):
    from .engine_core.config import MatchConfig

    try:
        if army_name:
            return MatchConfig.from_env(army=_army(army_name))
        return MatchConfig.from_env()
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)


def _army(name):
    from .engine_core.army import ARMIES

    if name not in ARMIES:
        raise ValueError(f"Unknown army '{name}', expected one of {sorted(ARMIES)}")
    return ARMIES[name]


def cmd_simulate(args):
    """Play both seats with a policy until the match is decided."""
    from .engine_core.engine import MatchEngine
    from .engine_core.state import BattlePhase
    from .session import create_policy

    config = _config(args.army)
    try:
        policy = create_policy(args.policy, config, seed=args.seed)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    engine = MatchEngine.create(
        [("North", "challenger"), ("South", "defender")],
        config=config,
        seed=args.seed,
        policy=None,
    )
    for player_id in engine.get_state().player_ids:
        engine.randomize_deployment(player_id)
        engine.set_ready(player_id)
    engine.scheduler.run_all()

    moves = 0
    state = engine.get_state()
    while state.battle.phase == BattlePhase.BATTLE and moves < args.max_moves:
        player_id = state.battle.turn_owner_id
        legal = engine.legal_moves(player_id)
        if not legal:
            break
        decision = policy.select_move(state, legal)
        result = engine.move(player_id, decision.move.from_cell, decision.move.to_cell)
        if not result:
            print(f"Error: policy produced an illegal move: {result.error}")
            sys.exit(1)
        moves += 1

    battle = state.battle
    if args.json:
        print(json.dumps(engine.snapshot(), indent=2))
        return

    print(f"Match {state.match_id}: {moves} moves, {config.army.name} army")
    if battle.phase == BattlePhase.GAME_OVER:
        winner = state.get_player(battle.winner_id) if battle.winner_id is not None else None
        print(f"Winner: {winner.name if winner else 'none'} ({battle.game_over_reason})")
    else:
        print(f"No result after {moves} moves")
    for player in state.players:
        print(f"  {player.name}: {len(battle.pieces_of(player.player_id))} pieces left")


def cmd_layout(args):
    """Generate a random deployment for one seat."""
    from .engine_core.engine import MatchEngine

    engine = MatchEngine.create(
        [("North", "challenger"), ("South", "defender")],
        config=_config(args.army),
        seed=args.seed,
        policy=None,
    )
    player_id = engine.get_state().players[args.seat].player_id
    engine.randomize_deployment(player_id)
    text = json.dumps(engine.export_deployment(player_id), indent=2)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(text + "\n")
        print(f"Layout written to {args.output}")
    else:
        print(text)


def cmd_rules(args):
    """Print the army table and the meta-game actions."""
    from .engine_core.action import list_actions

    config = _config(None)
    army = config.army
    print(f"Army: {army.name} ({army.total_pieces} pieces per player)")
    for rank in army.ranks:
        roles = []
        if rank.scout:
            roles.append("scout")
        if rank.defuses_bombs:
            roles.append("defuses bombs")
        if not rank.movable:
            roles.append("immobile")
        value = str(rank.value) if rank.value else "-"
        print(f"  {rank.code:>3} {rank.name:<11} x{rank.count:<2} value {value:>2}  {', '.join(roles)}")

    print("\nActions:")
    for action in list_actions():
        print(f"  {action.action_id:<11} cost {action.cost}  {action.description}")


def cmd_serve(args):
    """Run the API with uvicorn."""
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn not installed. Install with: pip install uvicorn")
        sys.exit(1)

    uvicorn.run(
        "warroom.api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
