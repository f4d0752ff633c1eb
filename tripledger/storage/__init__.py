"""Mini README: Persistence helpers for the ledger.

Exports the declarative ``Base`` and ``LedgerDatabase`` which wraps a
SQLAlchemy engine plus session factory. Table definitions live with the
ledger package; this package only knows how to connect.
"""

from .database import Base, LedgerDatabase, create_database_engine

__all__ = ["Base", "LedgerDatabase", "create_database_engine"]
