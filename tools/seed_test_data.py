"""Seed a local database with demo users, follows, posts and a conversation."""
from __future__ import annotations

import argparse
import logging
import sys

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from loopin.database import SessionLocal, init_db
from loopin.models import Post, User
from loopin.services import (
    BackendOfflineError,
    add_comment,
    add_post,
    check_backend_connectivity,
    create_user_profile,
    find_or_create_direct_conversation,
    network_status,
    send_message,
    toggle_post_like,
    update_user_follow_status,
    update_user_profile,
)

DEMO_PASSWORD = "loopin-demo"

DEMO_USERS = [
    {
        "username": "alice",
        "email": "alice@example.com",
        "full_name": "Alice Johnson",
        "bio": "Software developer and coffee enthusiast",
        "role": "admin",
    },
    {
        "username": "bobsmith",
        "email": "bob@example.com",
        "full_name": "Bob Smith",
        "bio": "Photographer and travel blogger",
    },
    {
        "username": "charlie",
        "email": "charlie@example.com",
        "full_name": "Charlie Davis",
        "bio": "Music producer and dog lover",
    },
]

# (follower, following)
DEMO_FOLLOWS = [
    ("alice", "bobsmith"),
    ("alice", "charlie"),
    ("bobsmith", "alice"),
    ("charlie", "bobsmith"),
]

DEMO_POSTS = [
    ("alice", "Just launched my new website! #webdev #coding"),
    ("bobsmith", "Exploring the mountains this weekend. The view is breathtaking!"),
]


def _ensure_user(db: Session, spec: dict[str, str]) -> User:
    existing = db.scalar(select(User).where(func.lower(User.username) == spec["username"]))
    if existing is not None:
        return existing
    user = create_user_profile(db, email=spec["email"], username=spec["username"], password=DEMO_PASSWORD)
    if spec.get("role"):
        user.role = spec["role"]
        db.commit()
    return update_user_profile(db, user.id, {"full_name": spec["full_name"], "bio": spec["bio"]})


def _seed(db: Session) -> int:
    users = {spec["username"]: _ensure_user(db, spec) for spec in DEMO_USERS}
    print(f"Users ready: {', '.join(sorted(users))} (password: {DEMO_PASSWORD})")

    for follower, following in DEMO_FOLLOWS:
        update_user_follow_status(db, users[follower].id, users[following].id, "follow")
    print(f"Follow edges ready: {len(DEMO_FOLLOWS)}")

    for username, content in DEMO_POSTS:
        author = users[username]
        already = db.scalar(select(Post.id).where(Post.user_id == author.id, Post.content == content))
        if already is not None:
            continue
        post = add_post(db, user_id=author.id, content=content)
        for liker in users.values():
            if liker.id != author.id:
                toggle_post_like(db, post.id, liker.id)
        add_comment(db, post.id, user_id=users["charlie"].id, content="Looks great! Congratulations!")
    print(f"Posts ready: {len(DEMO_POSTS)}")

    conversation = find_or_create_direct_conversation(
        db, users["alice"].id, users["bobsmith"].id, allow_queue=False
    )
    if not conversation.last_message:
        send_message(db, conversation.id, users["alice"].id, "Hey Bob! Loved your mountain photos.", allow_queue=False)
        send_message(db, conversation.id, users["bobsmith"].id, "Thanks Alice! You should come next time.", allow_queue=False)
    print(f"Conversation ready: {conversation.id}")
    return 0


def _run_check() -> int:
    network_status.update_status_silently(last_checked=0.0)
    connected = check_backend_connectivity()
    state = network_status.state
    print(f"online={state.is_online} backend_connected={connected}")
    return 0 if connected else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seed demo data for local LoopIn development.")
    parser.add_argument(
        "--check-connectivity",
        action="store_true",
        help="Only probe the database and report whether it is reachable.",
    )
    parser.add_argument("--skip-schema", action="store_true", help="Do not create missing tables first.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log service activity.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    if args.check_connectivity:
        return _run_check()

    if not args.skip_schema:
        init_db()
    try:
        with SessionLocal() as db:
            return _seed(db)
    except HTTPException as exc:
        print(f"Seeding failed: {exc.detail}", file=sys.stderr)
        return 2
    except BackendOfflineError as exc:
        print(f"Backend unreachable: {exc}", file=sys.stderr)
        return 3


if __name__ == "__main__":
    raise SystemExit(main())
