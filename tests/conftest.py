"""
Fixtures compartilhadas: colaboradores falsos em memória para os wizards.
"""
import pytest

from app.core.document_cache import InMemoryDocumentCache
from app.core.errors import StorageError
from app.core.models import SessionHandle, UploadedFile
from app.core.profile_manager import ProfileWizard
from app.core.registration_manager import RegistrationWizard


class RecordingNotifier:
    def __init__(self):
        self.notifications = []

    def notify(self, notification):
        self.notifications.append(notification)

    @property
    def titles(self):
        return [n.title for n in self.notifications]


class FakeAccountService:
    def __init__(self):
        self.register_calls = []
        self.error = None
        self.gate = None
        self.records = {}
        self.fetch_error = None
        self.listeners = []

    async def register(self, email, password, name, role, extra_fields):
        self.register_calls.append((email, password, name, role, extra_fields))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return "user-123"

    def current_session(self, token):
        return None

    def subscribe_session_changes(self, callback):
        self.listeners.append(callback)

        def unsubscribe():
            self.listeners.remove(callback)

        return unsubscribe

    async def publish(self, token, session):
        for listener in list(self.listeners):
            await listener(token, session)

    async def fetch_user_record(self, user_id):
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.records.get(user_id)


class FakeDocumentStore:
    def __init__(self):
        self.uploads = []
        self.fail_on_upload = None  # número (1-based) do upload que falha
        self.gate = None

    async def upload(self, path, content, content_type):
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_on_upload == len(self.uploads) + 1:
            raise StorageError(f"falha simulada em {path}")
        self.uploads.append(path)

    async def get_retrieval_url(self, path):
        return f"https://files.test/{path}"


class FakeRecordStore:
    def __init__(self):
        self.records = []
        self.error = None

    async def create_record(self, collection, payload):
        if self.error is not None:
            raise self.error
        self.records.append((collection, payload))


def make_file(name="doc.pdf", content_type="application/pdf", size=1024):
    return UploadedFile.from_bytes(name, content_type, b"x" * size)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def accounts():
    return FakeAccountService()


@pytest.fixture
def store():
    return FakeDocumentStore()


@pytest.fixture
def records():
    return FakeRecordStore()


@pytest.fixture
def cache():
    return InMemoryDocumentCache()


@pytest.fixture
def session():
    return SessionHandle(user_id="user-1", token="tok-1", email="medico@clinica.com")


@pytest.fixture
def registration(accounts, notifier):
    return RegistrationWizard(accounts, notifier)


@pytest.fixture
def profile(accounts, store, records, cache, notifier):
    return ProfileWizard(
        account_service=accounts,
        document_store=store,
        record_store=records,
        cache=cache,
        notifier=notifier,
    )


@pytest.fixture(name="make_file")
def make_file_fixture():
    return make_file
