"""Create an admin account.

Admins cannot self-register through the API:

    python -m auth admin@example.com "System Administrator" --username admin
"""
import argparse
import asyncio
import getpass
import logging

from database import init_db, close as db_close
from . import AuthManager, UserExistsError
from .models import UserRole

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

async def create_admin(username: str, email: str, full_name: str, password: str):
    await init_db()
    try:
        user = await AuthManager().register(
            username, email, password, full_name, role=UserRole.ADMIN
        )
        logger.info(f"Admin {user.username} created with id {user.id}")
    except UserExistsError as e:
        logger.error(str(e))
        raise SystemExit(1)
    finally:
        await db_close()

def main():
    parser = argparse.ArgumentParser(description="Create an admin account")
    parser.add_argument("email")
    parser.add_argument("full_name")
    parser.add_argument("--username", default="admin")
    args = parser.parse_args()

    password = getpass.getpass("Password: ")
    if len(password) < 8:
        parser.error("password must be at least 8 characters")
    if password != getpass.getpass("Confirm password: "):
        parser.error("passwords do not match")

    asyncio.run(create_admin(args.username, args.email, args.full_name, password))

if __name__ == "__main__":
    main()
