from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Declarative base for every ORM model (users, sessions).
    """
    pass
