"""
Show a user's chat quota: plan, usage, remaining credits and reset time.

Usage: python scripts/check_user_limit.py user@example.com
"""
import asyncio
import sys
from datetime import datetime
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from quotagate.app.core.utils import now_ms
from quotagate.app.db.async_session import close_async_engine, get_async_session
from quotagate.app.db.crud import get_user_by_email
from quotagate.app.services.quota import ChatQuotaService


async def check_user(email: str) -> int:
    async with get_async_session() as session:
        user = await get_user_by_email(session, email)

    if user is None:
        print("User not found")
        return 1

    usage = await ChatQuotaService().usage(user.id)
    info = usage.info
    reset_date = datetime.fromtimestamp(info.reset / 1000)

    print(f"\n--- User Info: {user.name} ({email}) ---")
    print(f"ID: {user.id}")
    print(f"Plan: {usage.tier}")
    print(f"Used: {info.count} / {info.limit}")
    print(f"Remaining: {info.remaining}")
    print(f"Reset Time (Unix ms): {info.reset}")
    print(f"Reset Date (Local): {reset_date:%Y-%m-%d %H:%M:%S}")
    print(f"Resets in: {round((info.reset - now_ms()) / 1000 / 60)} minutes")
    return 0


async def main(email: str) -> int:
    try:
        return await check_user(email)
    finally:
        await close_async_engine()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Please provide an email: python scripts/check_user_limit.py user@example.com")
        sys.exit(1)
    sys.exit(asyncio.run(main(sys.argv[1])))
