"""Mapped models used by the audit tests."""

from sqlalchemy import Integer, PickleType, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class ModelBase(DeclarativeBase):
    """Base for audited test models."""

    pass


class Widget(ModelBase):
    """Entity with a single integer key."""

    __tablename__ = "widgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(100))


class Gadget(ModelBase):
    """Entity with a composite key."""

    __tablename__ = "gadgets"

    region: Mapped[str] = mapped_column(String(10), primary_key=True)
    serial: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    label: Mapped[str] = mapped_column(String(100))


class Opaque:
    """Value with no JSON representation."""

    def __init__(self, token: str) -> None:
        self.token = token


class Blob(ModelBase):
    """Entity holding a pickled value the snapshot cannot encode."""

    __tablename__ = "blobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    payload: Mapped[Opaque] = mapped_column(PickleType)


class Secret(ModelBase):
    """Entity that chooses its own snapshot fields."""

    __tablename__ = "secrets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    owner: Mapped[str] = mapped_column(String(100))
    value: Mapped[str] = mapped_column(String(100))

    def __audit_snapshot__(self) -> dict[str, object]:
        return {"id": self.id, "owner": self.owner, "value": "***"}
