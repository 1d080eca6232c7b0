from sqlalchemy.schema import Column
from sqlalchemy.types import String

from playroom.models.schemas import Base


class UserTable(Base):
    __tablename__ = "users"
    username = Column(String, primary_key=True, index=True)
    hash_password = Column(String)
    salt = Column(String)
    display_name = Column(String)
