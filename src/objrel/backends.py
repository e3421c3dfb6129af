"""
Supported SQL backends.
"""

from enum import Enum
from typing import Union


class Backend(Enum):
    """SQL dialects the schema synthesizer and query compiler target"""

    POSTGRES = "pg"
    SQLITE = "sqlite"

    @property
    def sqlglot_dialect(self) -> str:
        """Dialect name sqlglot uses for this backend"""
        return "postgres" if self is Backend.POSTGRES else "sqlite"

    @classmethod
    def from_name(cls, backend: Union[str, "Backend"]) -> "Backend":
        """
        Look a backend up by name.

        Accepts "pg", "postgres", "postgresql" and "sqlite" in any case.

        Raises:
            ValueError: For unknown names
        """
        if isinstance(backend, Backend):
            return backend
        name = str(backend).lower()
        if name in ("pg", "postgres", "postgresql"):
            return cls.POSTGRES
        if name in ("sqlite", "sqlite3"):
            return cls.SQLITE
        raise ValueError(f"Unknown backend {backend!r}. Use one of: pg, sqlite")


__all__ = ["Backend"]
