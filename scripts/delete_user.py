#!/usr/bin/env python3
"""
Pairwise — Admin user removal

Deletes a user, every design pair they own (through the same best-effort
cascade the API uses), and the votes they cast on other designers' pairs.

Usage examples
--------------
  # Remove by id
  python scripts/delete_user.py --user-id 6f1c...

  # Remove by email, showing what would go without deleting
  python scripts/delete_user.py --email someone@example.com --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid

# Ensure the project root is importable
sys.path.insert(0, ".")

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import async_session_factory
from app.models.design import Design, DesignPair
from app.models.rating import Rating
from app.models.user import User
from app.services.design_service import DesignPairService
from app.services.errors import PairwiseError

logger = structlog.get_logger("pairwise.scripts.delete_user")


async def remove_user(
    user: User,
    db_session: AsyncSession,
    service: DesignPairService | None = None,
) -> dict:
    """Delete ``user`` and everything they own.

    Returns a summary with the pairs removed and any pair whose cascade
    could not complete.  The user row is kept when a pair delete failed,
    so the command can be re-run.
    """
    service = service or DesignPairService()
    log = logger.bind(user_id=str(user.id))

    pair_ids = list(
        (
            await db_session.execute(
                select(DesignPair.id).where(DesignPair.designer_id == user.id)
            )
        ).scalars()
    )

    summary: dict = {"pairs_deleted": [], "pairs_failed": [], "user_deleted": False}
    for pair_id in pair_ids:
        try:
            result = await service.delete_pair(pair_id, user.id, db_session)
        except PairwiseError as exc:
            log.error("pair_delete_failed", pair_id=str(pair_id), error=exc.message)
            summary["pairs_failed"].append(str(pair_id))
            continue
        summary["pairs_deleted"].append(str(pair_id))
        if result.failed_steps:
            log.warning(
                "pair_delete_partial",
                pair_id=str(pair_id),
                failed_steps=result.failed_steps,
            )

    if summary["pairs_failed"]:
        log.warning("user_kept", reason="pairs remain")
        return summary

    await db_session.execute(delete(Rating).where(Rating.tester_id == user.id))
    await db_session.execute(delete(Design).where(Design.designer_id == user.id))
    await db_session.execute(delete(User).where(User.id == user.id))
    await db_session.commit()

    summary["user_deleted"] = True
    log.info("user_deleted", pairs=len(summary["pairs_deleted"]))
    return summary


async def _find_user(args: argparse.Namespace, db_session: AsyncSession) -> User | None:
    if args.user_id:
        return await db_session.get(User, uuid.UUID(args.user_id))
    result = await db_session.execute(select(User).where(User.email == args.email))
    return result.scalar_one_or_none()


async def cmd_delete(args: argparse.Namespace) -> int:
    async with async_session_factory() as session:
        user = await _find_user(args, session)
        if user is None:
            print("User not found.")
            return 1

        pair_count = len(
            (
                await session.execute(
                    select(DesignPair.id).where(DesignPair.designer_id == user.id)
                )
            ).all()
        )

        print(f"\n{'=' * 60}")
        print(f"  User:        {user.email} ({user.id})")
        print(f"  Type:        {user.user_type}")
        print(f"  Pairs owned: {pair_count}")
        print(f"{'=' * 60}")

        if args.dry_run:
            print("  Dry run: nothing deleted.\n")
            return 0

        summary = await remove_user(user, session)

    print(f"  Pairs deleted: {len(summary['pairs_deleted'])}")
    if summary["pairs_failed"]:
        print(f"  Pairs failed:  {', '.join(summary['pairs_failed'])}")
    print(f"  User deleted:  {'yes' if summary['user_deleted'] else 'no'}\n")
    return 0 if summary["user_deleted"] else 2


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Delete a user and all design pairs they own.",
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--user-id", type=str, help="User UUID.")
    target.add_argument("--email", type=str, help="User email address.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Show what would be deleted without deleting it.",
    )

    args = parser.parse_args()
    sys.exit(asyncio.run(cmd_delete(args)))


if __name__ == "__main__":
    main()
