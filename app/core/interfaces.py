"""
Contratos dos colaboradores externos consumidos pelos wizards.

Implementações concretas ficam em app.infra, app.storage e app.cache;
os testes usam versões falsas em memória.
"""
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from .models import Notification, Role, SessionHandle, UserRecord


SessionListener = Callable[[str, Optional[SessionHandle]], Awaitable[None]]
Unsubscribe = Callable[[], None]


class AccountService(Protocol):
    async def register(
        self,
        email: str,
        password: str,
        name: str,
        role: Role,
        extra_fields: Dict[str, str],
    ) -> str:
        ...

    def current_session(self, token: str) -> Optional[SessionHandle]:
        ...

    def subscribe_session_changes(self, callback: SessionListener) -> Unsubscribe:
        ...

    async def fetch_user_record(self, user_id: str) -> Optional[UserRecord]:
        ...


class DocumentStore(Protocol):
    async def upload(self, path: str, content: bytes, content_type: str) -> None:
        ...

    async def get_retrieval_url(self, path: str) -> str:
        ...


class RecordStore(Protocol):
    async def create_record(self, collection: str, payload: Dict[str, Any]) -> None:
        ...


class DurableLocalCache(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None:
        ...
