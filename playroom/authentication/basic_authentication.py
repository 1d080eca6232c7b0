import argparse
import asyncio
import logging
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from sqlalchemy.exc import SQLAlchemyError

from playroom.authentication.basic_authentication_crud import (
    CreateAuthentication,
    ReadAuthentication,
    UpdateAuthentication,
    hash_password,
)
from playroom.crud import CreateData
from playroom.db import Session, engine
from playroom.models.basic_authentication_models import IdentityModel, UserModel

security = HTTPBasic()
create_auth = CreateAuthentication()
read_auth = ReadAuthentication()
update_auth = UpdateAuthentication()


class BasicAuthentication:
    def __init__(self):
        pass

    async def check_user_data(
        self, credentials: HTTPBasicCredentials = Depends(security)
    ) -> IdentityModel:
        """Check the caller's credentials and return the identity the session core works with

        Args:
            credentials (HTTPBasicCredentials, optional): Defaults to Depends(security).

        Raises:
            HTTPException: The user is not found in the database
            HTTPException: The password is incorrect
            HTTPException: The user database is unavailable

        Returns:
            IdentityModel: identity id (the username) and current display name
        """
        try:
            async with Session() as session:
                user_data: UserModel = await read_auth.read_user_data(credentials.username, session)
        except SQLAlchemyError as e:
            logging.error(f"Failed to read user data: {e}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="User database unavailable",
            )
        if user_data is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid username",
                headers={"WWW-Authenticate": "Basic"},
            )

        hashed_password = hash_password(credentials.password, user_data.salt)
        if not secrets.compare_digest(hashed_password, user_data.hash_password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid password",
                headers={"WWW-Authenticate": "Basic"},
            )
        return IdentityModel(
            identity_id=user_data.username,
            display_name=user_data.display_name or user_data.username,
        )

    async def update_display_name(self, identity: IdentityModel, display_name: str) -> IdentityModel:
        async with Session() as session:
            await update_auth.update_display_name(identity.identity_id, display_name, session)
        return IdentityModel(identity_id=identity.identity_id, display_name=display_name)

    async def store_user_data(self, user_name: str, password: str, display_name: str) -> None:
        await CreateData.create_table(engine)
        async with Session() as session:
            await create_auth.create_user_data(user_name, password, display_name, session)

    async def read_user_data(self, user_name: str) -> UserModel:
        async with Session() as session:
            user_data: UserModel = await read_auth.read_user_data(username=user_name, session=session)
        return user_data


def get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Basic Authentication")
    parser.add_argument("--username", type=str, help="Username", required=True)
    parser.add_argument("--password", type=str, help="Password", required=True)
    parser.add_argument("--display-name", type=str, help="Name shown to opponents", default=None)
    return parser


async def main(user_name: str, password: str, display_name: str | None):
    basic_auth = BasicAuthentication()
    await basic_auth.store_user_data(user_name, password, display_name or user_name)
    user_data = await basic_auth.read_user_data(user_name)
    print(user_data.username, user_data.display_name, user_data.salt)


if __name__ == "__main__":
    parser = get_parser()
    args = parser.parse_args()
    asyncio.run(main(args.username, args.password, args.display_name))
