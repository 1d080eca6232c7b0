from pydantic import BaseModel


class UserModel(BaseModel):
    """This class is used to create a user model for basic authentication."""
    username: str
    hash_password: str
    salt: str
    display_name: str | None = None


class IdentityModel(BaseModel):
    """The authenticated caller as seen by the session core."""
    identity_id: str
    display_name: str
