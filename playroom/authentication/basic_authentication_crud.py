import hashlib
import logging
import secrets
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from playroom.models.basic_authentication_schemas import UserTable
from playroom.models.basic_authentication_models import UserModel
from playroom.load_secrets import pepper_data

logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def hash_password(password: str, salt: str) -> str:
    return hashlib.sha256((password + salt + pepper_data).encode()).hexdigest()


class CreateAuthentication:
    @staticmethod
    async def create_user_data(username: str, password: str, display_name: str, session: AsyncSession):
        """Create user data to authenticate the user

        Args:
            username (str): Login name, also the identity id used by sessions
            password (str): Plain password; only its salted hash is stored
            display_name (str): Name shown to the opponent
        """
        salt = secrets.token_hex(8)
        async with session.begin():
            new_user = UserTable(
                username=username,
                hash_password=hash_password(password, salt),
                salt=salt,
                display_name=display_name,
            )
            session.add(new_user)


class ReadAuthentication:
    @staticmethod
    async def read_user_data(username: str, session: AsyncSession) -> UserModel | None:
        """Read user data to get salt and password hash

        Args:
            username (str): username of the user

        Returns:
            UserModel: username, password hash, salt and display name
        """
        async with session:
            stmt = (select(UserTable)
                    .where(UserTable.username == username)
            )
            result = await session.execute(stmt)
            result = result.scalars().first()
            if result is None:
                logging.info(f"User not found: {username}")
                return None
            return UserModel(
                username=result.username,
                hash_password=result.hash_password,
                salt=result.salt,
                display_name=result.display_name,
            )


class UpdateAuthentication:
    @staticmethod
    async def update_display_name(username: str, display_name: str, session: AsyncSession) -> bool:
        """Change the name shown for an identity; sessions pick it up on the next attach

        Returns:
            bool: False if the user does not exist
        """
        async with session.begin():
            stmt = select(UserTable).where(UserTable.username == username)
            result = await session.execute(stmt)
            result = result.scalars().first()
            if result is None:
                return False
            result.display_name = display_name
        return True
