from .ledger import OrphanLedger
from .models import Base, OrphanedSubOrganization
from .sqlalchemy_manager import SQLAlchemyManager, init_db

__all__ = [
    "Base",
    "OrphanLedger",
    "OrphanedSubOrganization",
    "SQLAlchemyManager",
    "init_db",
]
