import asyncio

import pytest

from app.core.documents import DOCUMENT_GROUPS, DocumentKey, serialize_documents, empty_document_set
from app.core.errors import ExternalServiceError, PartialFailure, PreconditionError, StorageError, ValidationError
from app.core.models import Role, SessionHandle, UploadedFile, UserRecord
from app.core.profile_forms import FinancialInfo, PersonalInfo
from app.core.profile_manager import DEFAULT_CACHE_KEY, ProfileWizard

PERSONAL, PROFESSIONAL, SPECIALIST = (group.keys for group in DOCUMENT_GROUPS)


def fill(wizard, keys, make_file):
    for key in keys:
        assert wizard.set_document(key, make_file(name=f"{key.value}.pdf")).ok


# Checklist

def test_advance_blocked_until_all_personal_documents_present(profile, notifier, make_file):
    fill(profile, PERSONAL[:3], make_file)

    result = profile.advance()

    assert not result.ok
    assert isinstance(result.error, ValidationError)
    assert profile.step == 0
    assert notifier.titles == ["Documentos obrigatórios"]
    assert "Comprovante de Residência" in notifier.notifications[0].description

    profile.set_document(PERSONAL[3], make_file())
    assert profile.advance().ok
    assert profile.step == 1


def test_advance_evaluates_current_group_only(profile, make_file):
    fill(profile, PERSONAL, make_file)
    profile.advance()
    fill(profile, PROFESSIONAL[:5], make_file)

    assert not profile.advance().ok
    assert profile.step == 1

    fill(profile, PROFESSIONAL[5:], make_file)
    assert profile.advance().ok
    assert profile.step == 2


def test_advance_on_last_step_is_noop(profile, make_file):
    fill(profile, PERSONAL + PROFESSIONAL, make_file)
    profile.advance()
    profile.advance()

    result = profile.advance()

    assert result.ok
    assert profile.step == 2


def test_retreat_is_floored_at_zero(profile, make_file):
    fill(profile, PERSONAL, make_file)
    profile.advance()

    profile.retreat()
    profile.retreat()

    assert profile.step == 0


def test_rejected_file_never_enters_the_set(profile, cache, notifier, make_file):
    result = profile.set_document(DocumentKey.RG, make_file(size=6 * 1024 * 1024))

    assert not result.ok
    assert profile.documents[DocumentKey.RG] is None
    assert cache.get(DEFAULT_CACHE_KEY) is None
    assert notifier.titles == ["Arquivo muito grande"]

    profile.set_document(DocumentKey.RG, make_file(name="rg.txt", content_type="text/plain"))
    assert notifier.titles[-1] == "Formato inválido"
    assert profile.documents[DocumentKey.RG] is None


def test_set_document_overwrites_and_persists(profile, cache, make_file):
    profile.set_document(DocumentKey.PHOTO, make_file(name="old.png", content_type="image/png"))
    profile.set_document("photo", make_file(name="new.jpg", content_type="image/jpeg"))

    assert profile.documents[DocumentKey.PHOTO].name == "new.jpg"
    assert "new.jpg" in cache.get(DEFAULT_CACHE_KEY)


def test_set_document_unknown_slot(profile, notifier, make_file):
    result = profile.set_document("passport", make_file())

    assert not result.ok
    assert notifier.titles == ["Documento desconhecido"]


@pytest.mark.asyncio
async def test_open_restores_documents_from_cache(accounts, store, records, cache, notifier, session, make_file):
    first = ProfileWizard(accounts, store, records, cache, notifier)
    first.set_document(DocumentKey.CPF, make_file(name="cpf.pdf"))
    first.close()

    second = ProfileWizard(accounts, store, records, cache, notifier)
    await second.open(session)

    restored = second.documents[DocumentKey.CPF]
    assert restored.name == "cpf.pdf"
    assert restored.content == b"x" * 1024


@pytest.mark.asyncio
async def test_open_discards_cached_files_that_fail_the_guard(profile, cache, session):
    documents = empty_document_set()
    documents[DocumentKey.RG] = UploadedFile.from_bytes("rg.exe", "application/x-msdownload", b"MZ")
    documents[DocumentKey.CPF] = UploadedFile.from_bytes("cpf.pdf", "application/pdf", b"%PDF")
    cache.set(DEFAULT_CACHE_KEY, serialize_documents(documents))

    await profile.open(session)

    assert profile.documents[DocumentKey.RG] is None
    assert profile.documents[DocumentKey.CPF].name == "cpf.pdf"


# Envio

@pytest.mark.asyncio
async def test_finish_early_requires_all_mandatory_documents(profile, store, records, notifier, session, make_file):
    fill(profile, PERSONAL, make_file)

    result = await profile.finish_early(session)

    assert not result.ok
    assert store.uploads == []
    assert records.records == []
    assert notifier.titles == ["Documentos obrigatórios"]


@pytest.mark.asyncio
async def test_finish_early_submits_without_specialist_documents(profile, store, records, session, make_file):
    fill(profile, PERSONAL + PROFESSIONAL, make_file)

    result = await profile.finish_early(session)

    assert result.ok and result.completed
    assert len(store.uploads) == 10
    assert len(records.records) == 1


@pytest.mark.asyncio
async def test_partial_upload_failure_writes_no_record(profile, store, records, cache, notifier, session, make_file):
    fill(profile, (DocumentKey.RG, DocumentKey.CPF, DocumentKey.PHOTO), make_file)
    before = dict(profile.documents)
    store.fail_on_upload = 2

    result = await profile.submit(session)

    assert not result.ok
    assert isinstance(result.error, PartialFailure)
    assert result.error.uploaded_keys == ["rg"]
    assert records.records == []
    assert profile.documents == before
    assert cache.get(DEFAULT_CACHE_KEY) is not None
    assert notifier.titles[-1] == "Erro ao salvar"


@pytest.mark.asyncio
async def test_record_failure_keeps_selection(profile, records, session, make_file):
    fill(profile, PERSONAL, make_file)
    records.error = StorageError("db offline")

    result = await profile.submit(session)

    assert not result.ok
    assert isinstance(result.error, ExternalServiceError)
    assert all(profile.documents[key] is not None for key in PERSONAL)


@pytest.mark.asyncio
async def test_successful_submit_clears_set_and_cache(profile, store, records, cache, notifier, session, make_file):
    fill(profile, PERSONAL + PROFESSIONAL, make_file)
    profile.set_document(DocumentKey.RQE, make_file(name="rqe.png", content_type="image/png"))
    profile.advance()
    profile.advance()

    result = await profile.submit(session)

    assert result.ok
    assert profile.step == 0
    assert all(file is None for file in profile.documents.values())
    assert set(profile.documents) == set(DocumentKey)
    assert cache.get(DEFAULT_CACHE_KEY) is None
    assert store.uploads[0] == "documents/user-1/rg"
    collection, payload = records.records[0]
    assert collection == "users"
    assert payload["uid"] == "user-1"
    assert payload["documents"]["rqe"] == "https://files.test/documents/user-1/rqe"
    assert len(payload["documents"]) == 11
    assert notifier.titles[-1] == "Documentos salvos"


@pytest.mark.asyncio
async def test_submit_without_session_is_precondition_error(profile, store, make_file):
    fill(profile, PERSONAL, make_file)

    result = await profile.submit(None)

    assert isinstance(result.error, PreconditionError)
    assert store.uploads == []


@pytest.mark.asyncio
async def test_submit_resolved_after_close_does_not_touch_state(profile, store, records, cache, session, make_file):
    fill(profile, PERSONAL, make_file)
    store.gate = asyncio.Event()

    task = asyncio.create_task(profile.submit(session))
    await asyncio.sleep(0)
    second = await profile.submit(session)
    profile.close()
    store.gate.set()
    await task

    assert second.suppressed
    assert all(profile.documents[key] is not None for key in PERSONAL)
    assert cache.get(DEFAULT_CACHE_KEY) is not None


# Formulários e sessão

@pytest.mark.asyncio
async def test_save_personal_info_writes_independent_record(profile, records, notifier, session):
    info = PersonalInfo(name="Ana", cpf="123.456.789-10", gender="female")

    result = await profile.save_personal_info(session, info)
    await profile.save_personal_info(session)

    assert result.ok
    assert len(records.records) == 2
    collection, payload = records.records[0]
    assert collection == "users"
    assert payload["personal"]["gender"] == "female"
    assert payload["uid"] == "user-1"
    assert notifier.titles == ["Informações pessoais salvas"] * 2


@pytest.mark.asyncio
async def test_save_financial_info_requires_session(profile, records, notifier):
    result = await profile.save_financial_info(None, FinancialInfo(bank="001", hourly_rate=150))

    assert isinstance(result.error, PreconditionError)
    assert records.records == []
    assert notifier.titles == ["Usuário não autenticado"]


@pytest.mark.asyncio
async def test_save_professional_info_reports_store_failure(profile, records, notifier, session):
    records.error = StorageError("timeout")

    result = await profile.save_professional_info(session)

    assert isinstance(result.error, ExternalServiceError)
    assert notifier.titles == ["Erro ao salvar"]


@pytest.mark.asyncio
async def test_open_prefills_forms_from_user_record(profile, accounts, session):
    accounts.records["user-1"] = UserRecord(
        user_id="user-1", name="Dr. João", email="joao@clinica.com", role=Role.DOCTOR, crm="CRM 12345"
    )

    await profile.open(session)

    assert profile.personal_info.name == "Dr. João"
    assert profile.personal_info.email == "joao@clinica.com"
    assert profile.professional_info.crm == "CRM 12345"
    assert profile.is_loading_profile is False


@pytest.mark.asyncio
async def test_open_reports_fetch_failure(profile, accounts, notifier, session):
    accounts.fetch_error = RuntimeError("offline")

    await profile.open(session)

    assert notifier.titles == ["Erro ao carregar perfil"]
    assert profile.is_loading_profile is False


@pytest.mark.asyncio
async def test_open_without_session_notifies(profile, notifier):
    await profile.open(None)

    assert notifier.titles == ["Usuário não autenticado"]


@pytest.mark.asyncio
async def test_sign_out_event_drops_session_and_close_releases_subscription(profile, accounts, session):
    await profile.open(session)
    assert len(accounts.listeners) == 1

    await accounts.publish("other-token", None)
    assert profile.session == session

    await accounts.publish(session.token, None)
    assert profile.session is None

    profile.close()
    assert accounts.listeners == []


def test_checklist_status_lists_missing_slots(profile, make_file):
    fill(profile, PERSONAL[:2], make_file)

    status = profile.checklist_status()

    assert [group["label"] for group in status] == [
        "Documentos Pessoais",
        "Documentos Profissionais",
        "Documentos de Especialista",
    ]
    assert status[0]["current"] is True
    assert status[0]["missing"] == ["photo", "proofOfResidence"]
    assert status[2]["missing"] == []


@pytest.mark.asyncio
async def test_document_selection_is_frozen_while_submitting(profile, store, session, make_file):
    fill(profile, PERSONAL, make_file)
    store.gate = asyncio.Event()

    task = asyncio.create_task(profile.submit(session))
    await asyncio.sleep(0)
    result = profile.set_document(DocumentKey.RQE, make_file(name="rqe.pdf"))
    store.gate.set()
    await task

    assert result.suppressed
    assert not result.ok
    assert profile.documents[DocumentKey.RQE] is None
    assert len(store.uploads) == len(PERSONAL)


@pytest.mark.asyncio
async def test_wizard_stays_bound_to_its_token_after_sign_out(profile, accounts, session):
    await profile.open(session)
    await accounts.publish(session.token, None)

    accounts.records["intruder"] = UserRecord(
        user_id="intruder", name="Outro", email="outro@clinica.com", role=Role.DOCTOR, crm="CRM 99999"
    )
    await accounts.publish("tok-other", SessionHandle(user_id="intruder", token="tok-other"))

    assert profile.session is None
    assert profile.personal_info.name == ""
    assert profile.professional_info.crm == ""


@pytest.mark.asyncio
async def test_failed_save_keeps_previous_form_values(profile, records, session):
    records.error = StorageError("timeout")

    result = await profile.save_personal_info(session, PersonalInfo(name="Ana"))

    assert not result.ok
    assert profile.personal_info == PersonalInfo()

    await profile.save_financial_info(None, FinancialInfo(bank="001"))
    assert profile.financial_info == FinancialInfo()


@pytest.mark.asyncio
async def test_successful_save_updates_form_values(profile, session):
    await profile.save_financial_info(session, FinancialInfo(bank="001", hourly_rate=150))

    assert profile.financial_info.bank == "001"
