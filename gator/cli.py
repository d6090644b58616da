"""Command-line entry point for gator."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from datetime import datetime

from gator import config as config_module
from gator.commands import Command, CommandError, Commands
from gator.database import DatabaseError, connect
from gator.handlers import (
    State,
    handler_add_feed,
    handler_agg,
    handler_browse,
    handler_feeds,
    handler_follow,
    handler_following,
    handler_login,
    handler_register,
    handler_reset,
    handler_unfollow,
    handler_users,
    middleware_logged_in,
)
from gator.rss import FeedError


def build_commands() -> Commands:
    """Return the registry holding every gator command."""
    cmds = Commands()
    cmds.register("browse", middleware_logged_in(handler_browse))
    cmds.register("unfollow", middleware_logged_in(handler_unfollow))
    cmds.register("follow", middleware_logged_in(handler_follow))
    cmds.register("following", middleware_logged_in(handler_following))
    cmds.register("login", handler_login)
    cmds.register("register", handler_register)
    cmds.register("reset", handler_reset)
    cmds.register("users", handler_users)
    cmds.register("agg", handler_agg)
    cmds.register("addfeed", middleware_logged_in(handler_add_feed))
    cmds.register("feeds", handler_feeds)
    return cmds


def _fatal(message: str) -> int:
    stamp = datetime.now().strftime("%Y/%m/%d %H:%M:%S")
    print(f"{stamp} {message}", file=sys.stderr)
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command named in ``argv`` and return the exit status."""
    args = list(sys.argv[1:] if argv is None else argv)

    try:
        cfg = config_module.read()
    except (OSError, ValueError) as exc:
        return _fatal(f"error reading config: {exc}")

    try:
        db = connect(cfg.db_url)
    except DatabaseError as exc:
        return _fatal(f"error connecting to db: {exc}")

    with db:
        state = State(db=db, config=cfg)
        cmds = build_commands()
        if not args:
            return _fatal("Usage: cli <command> [args...]")
        try:
            cmds.run(state, Command(name=args[0], args=tuple(args[1:])))
        except (CommandError, DatabaseError, FeedError, OSError, ValueError) as exc:
            return _fatal(str(exc))
        except KeyboardInterrupt:
            return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())