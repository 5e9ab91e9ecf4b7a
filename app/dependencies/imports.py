"""
Dependency injection for import sessions and external collaborators
"""

from typing import Dict, Optional

from fastapi import Depends

from app.clients.event_publisher import DaprEventPublisher, get_event_publisher
from app.clients.product_write_client import ProductWriteService, get_product_write_client
from app.core.errors import ErrorResponse
from app.services.reports import ReportService, get_report_service
from app.services.wizard import ImportWizard


class ImportSessionStore:
    """In-process registry of wizard sessions; sessions share no state"""

    def __init__(self):
        self._sessions: Dict[str, ImportWizard] = {}

    def create(self) -> ImportWizard:
        wizard = ImportWizard()
        self._sessions[wizard.session_id] = wizard
        return wizard

    def get(self, session_id: str) -> ImportWizard:
        wizard = self._sessions.get(session_id)
        if wizard is None:
            raise ErrorResponse(
                f"Import session not found: {session_id}",
                status_code=404,
                details={"session_id": session_id},
            )
        return wizard

    def delete(self, session_id: str) -> ImportWizard:
        wizard = self.get(session_id)
        if wizard.executor is not None and wizard.executor.phase.is_running:
            wizard.executor.cancel()
        return self._sessions.pop(session_id)

    def __len__(self) -> int:
        return len(self._sessions)


_session_store: Optional[ImportSessionStore] = None


def get_session_store() -> ImportSessionStore:
    """Get the global session store"""
    global _session_store
    if _session_store is None:
        _session_store = ImportSessionStore()
    return _session_store


async def get_import_session(
    session_id: str,
    store: ImportSessionStore = Depends(get_session_store),
) -> ImportWizard:
    """Resolve the wizard of the session in the path"""
    return store.get(session_id)


def get_write_service() -> ProductWriteService:
    """Write service used by import runs"""
    return get_product_write_client()


def get_publisher() -> DaprEventPublisher:
    """Publisher for import-completed notifications"""
    return get_event_publisher()


def get_reports() -> ReportService:
    return get_report_service()
