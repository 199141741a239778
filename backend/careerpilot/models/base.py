"""Column mixins shared by the models."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column


class TimestampMixin:
    """Database-maintained ``created_at`` / ``updated_at`` (timezone-aware)."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class PKMixin:
    id: Mapped[int] = mapped_column(Integer, primary_key=True)


class ReprMixin:
    """``<Model id=1 field=value>`` using the attributes named in ``__repr_fields__``.

    Never list secrets (password hashes) in ``__repr_fields__``.
    """

    __repr_fields__: ClassVar[tuple[str, ...]] = ()

    def __repr__(self) -> str:
        parts = [f"id={getattr(self, 'id', None)}"]
        parts += [f"{name}={getattr(self, name, None)!r}" for name in self.__repr_fields__]
        return f"<{self.__class__.__name__} {' '.join(parts)}>"
