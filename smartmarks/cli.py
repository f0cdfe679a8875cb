from __future__ import annotations

import argparse
import logging
import signal
import sys

from smartmarks.client import (
    BackendError,
    BookmarkSession,
    ChangeEvent,
    ClientSettings,
    HttpBackend,
    SessionProvider,
)


def _format_bookmark(bookmark) -> str:
    created = bookmark.created
    stamp = created.strftime("%Y-%m-%d") if created else "-"
    return f"{bookmark.id}  {stamp}  {bookmark.title}  <{bookmark.url}>"


def _print_event(event: ChangeEvent) -> None:
    if event.record is not None:
        print(f"{event.type.value:<6} {_format_bookmark(event.record)}", flush=True)
    else:
        print(f"{event.type.value:<6} {event.bookmark_id}", flush=True)


def _close_on_interrupt(feed) -> None:
    """First Ctrl-C closes the feed; a second one interrupts as usual."""

    def handler(signum, frame):
        signal.signal(signal.SIGINT, signal.default_int_handler)
        feed.close()

    signal.signal(signal.SIGINT, handler)


def build_parser() -> argparse.ArgumentParser:
    settings = ClientSettings.from_env()
    p = argparse.ArgumentParser(prog="smartmarks")
    p.add_argument("--url", default=settings.base_url)
    p.add_argument("--username", default=settings.username)
    p.add_argument("--password", default=settings.password)
    p.add_argument("--timeout", type=float, default=settings.timeout)
    p.add_argument("--poll-interval", type=float, default=settings.poll_interval)
    p.add_argument("--feed-wait", type=float, default=settings.feed_wait)
    p.add_argument("--log-level", default="WARNING")

    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="print bookmarks newest first")
    add = sub.add_parser("add", help="save a bookmark")
    add.add_argument("url")
    add.add_argument("title")
    delete = sub.add_parser("delete", help="delete a bookmark by id")
    delete.add_argument("bookmark_id")
    sub.add_parser("watch", help="print changes as they arrive")
    return p


def run(args, backend: HttpBackend) -> int:
    provider = SessionProvider(backend)
    session = BookmarkSession(backend, provider)
    try:
        provider.sign_in(args.username, args.password)
    except BackendError as exc:
        print(f"Sign-in failed: {exc}", file=sys.stderr)
        return 1

    try:
        if args.command == "list":
            for bookmark in session.bookmarks:
                print(_format_bookmark(bookmark))
        elif args.command == "add":
            try:
                bookmark = session.add(args.url, args.title)
            except (BackendError, ValueError) as exc:
                print(f"Could not add bookmark: {exc}", file=sys.stderr)
                return 1
            print(_format_bookmark(bookmark))
        elif args.command == "delete":
            if not session.delete(args.bookmark_id):
                print(f"Could not delete {args.bookmark_id}", file=sys.stderr)
                return 1
            print(f"Deleted {args.bookmark_id}")
        elif args.command == "watch":
            print(f"Watching {len(session.bookmarks)} bookmarks", flush=True)
            subscription = session.subscription
            if subscription is not None:
                _close_on_interrupt(subscription)
            try:
                session.follow(on_event=_print_event)
            except KeyboardInterrupt:
                pass
    finally:
        provider.sign_out()
        session.close()
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not args.username or not args.password:
        print("--username and --password are required", file=sys.stderr)
        return 2

    with HttpBackend(
        args.url,
        timeout=args.timeout,
        poll_interval=args.poll_interval,
        feed_wait=args.feed_wait,
    ) as backend:
        return run(args, backend)


if __name__ == "__main__":
    sys.exit(main())
