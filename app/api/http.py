import logging
import base64
import binascii
import time
from contextlib import asynccontextmanager
from uuid import uuid4
from fastapi import Depends, FastAPI, HTTPException, Header, Request, Response
from fastapi.responses import FileResponse
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Any, Dict, List, Optional
from pydantic import BaseModel
from ..config import AppConfig
from ..core.engine import PlatformEngine, WizardEntry
from ..core.errors import AccountServiceError, ExternalServiceError, PreconditionError, StorageError, ValidationError
from ..core.models import Notification, Role, SessionHandle, UploadedFile
from ..core.profile_forms import FinancialInfo, PersonalInfo, ProfessionalInfo
from ..core.results import WizardResult

logger = logging.getLogger(__name__)


class Toast(BaseModel):
    title: str
    description: str
    severity: str


class WizardResponse(BaseModel):
    ok: bool
    step: int
    toasts: List[Toast]
    completed: bool = False
    user_id: Optional[str] = None
    redirect_to: Optional[str] = None
    session_token: Optional[str] = None


class RegistrationStartResponse(BaseModel):
    wizard_id: str
    step: int
    step_labels: List[str]


class RoleRequest(BaseModel):
    role: Role


class DetailsRequest(BaseModel):
    name: str
    cnpj: Optional[str] = None  # Para empresas
    crm: Optional[str] = None  # Para médicos


class CredentialsRequest(BaseModel):
    email: str
    password: str
    confirm_password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    session_token: str
    user_id: str


class DocumentUploadRequest(BaseModel):
    file_name: str
    content_type: str
    content_base64: str


class ChecklistResponse(BaseModel):
    step: int
    groups: List[Dict[str, Any]]
    toasts: List[Toast]


class ProfileResponse(BaseModel):
    personal: PersonalInfo
    professional: ProfessionalInfo
    financial: FinancialInfo
    step: int
    toasts: List[Toast]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware que gera request_id único para cada requisição
    e adiciona aos logs e headers de resposta.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = uuid4().hex[:16]  # 16 caracteres hexadecimais
        request.state.request_id = request_id

        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Request processado: request_id={request_id}, "
            f"method={request.method}, path={request.url.path}, "
            f"status={response.status_code}, duration_ms={duration_ms:.2f}"
        )

        return response


def require_api_key(config: AppConfig, x_api_key: Optional[str]) -> None:
    """
    Valida API key baseado no ambiente.

    Em produção (ENV=prod), sempre exige API key.
    Em desenvolvimento (ENV=dev), só exige se BOT_API_KEY estiver configurada.
    """
    expected_key = config.bot_api_key or ""

    if config.env == "prod":
        if not x_api_key or x_api_key != expected_key:
            logger.warning("Tentativa de acesso não autorizado em PRODUÇÃO")
            raise HTTPException(status_code=401, detail="Invalid API key")
    else:
        if expected_key and expected_key.strip():
            if x_api_key != expected_key:
                logger.warning("Tentativa de acesso não autorizado em DEV")
                raise HTTPException(status_code=401, detail="Invalid API key")
        else:
            logger.debug("BOT_API_KEY não configurada, aceitando requisição sem autenticação (modo desenvolvimento)")


def to_toasts(notifications: List[Notification]) -> List[Toast]:
    return [
        Toast(title=n.title, description=n.description, severity=n.severity.value)
        for n in notifications
    ]


def status_for(result: WizardResult) -> int:
    """
    Status HTTP de uma ação de wizard já reportada ao usuário.
    """
    if result.ok:
        return 200
    if result.suppressed:
        return 409
    if isinstance(result.error, ValidationError):
        return 400
    if isinstance(result.error, PreconditionError):
        return 401
    if isinstance(result.error, ExternalServiceError):
        return 502
    return 500


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """
    Cria a aplicação FastAPI e injeta dependências principais (config + engine).
    """
    config = config or AppConfig.load_from_env()
    engine = PlatformEngine(config=config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        engine.shutdown()

    app = FastAPI(
        title="Clínica FHT - Cadastro e Perfil",
        version="0.1.0",
        description="API de cadastro de médicos/empresas e de preenchimento de perfil.",
        lifespan=lifespan,
    )
    app.state.engine = engine

    app.add_middleware(RequestIDMiddleware)

    def api_key_guard(x_api_key: Optional[str] = Header(default=None, alias="X-API-KEY")) -> None:
        require_api_key(config, x_api_key)

    def current_session(
        x_session_token: Optional[str] = Header(default=None, alias="X-Session-Token"),
    ) -> SessionHandle:
        session = engine.accounts.current_session(x_session_token or "")
        if session is None:
            raise HTTPException(status_code=401, detail="Usuário não autenticado")
        return session

    def wizard_response(entry: WizardEntry, result: WizardResult, response: Response, **extra) -> WizardResponse:
        response.status_code = status_for(result)
        return WizardResponse(
            ok=result.ok,
            step=result.step,
            toasts=to_toasts(entry.notifier.drain()),
            completed=result.completed,
            user_id=result.user_id,
            **extra,
        )

    def registration_entry(wizard_id: str) -> WizardEntry:
        entry = engine.get_registration_wizard(wizard_id)
        if entry is None:
            raise HTTPException(status_code=404, detail="Cadastro não encontrado")
        return entry

    @app.get("/health")
    def health_check():
        """
        Endpoint de health check para monitoramento e Docker healthchecks.
        """
        status = engine.health()
        ok = all(status.values())
        if not ok:
            logger.warning(f"Health check com falhas: status={status}")
        return {"ok": ok, **status}

    # ------------------------------------------------------------------
    # Cadastro
    # ------------------------------------------------------------------

    @app.post("/register", response_model=RegistrationStartResponse, dependencies=[Depends(api_key_guard)])
    def start_registration() -> RegistrationStartResponse:
        wizard_id = engine.create_registration_wizard()
        entry = engine.get_registration_wizard(wizard_id)
        return RegistrationStartResponse(
            wizard_id=wizard_id,
            step=entry.wizard.step,
            step_labels=list(entry.wizard.step_labels),
        )

    @app.post("/register/{wizard_id}/role", response_model=WizardResponse, dependencies=[Depends(api_key_guard)])
    def select_role(wizard_id: str, payload: RoleRequest, response: Response) -> WizardResponse:
        entry = registration_entry(wizard_id)
        result = entry.wizard.select_role(payload.role)
        return wizard_response(entry, result, response)

    @app.post("/register/{wizard_id}/details", response_model=WizardResponse, dependencies=[Depends(api_key_guard)])
    def submit_details(wizard_id: str, payload: DetailsRequest, response: Response) -> WizardResponse:
        entry = registration_entry(wizard_id)
        entry.wizard.update_draft(name=payload.name, cnpj=payload.cnpj, crm=payload.crm)
        result = entry.wizard.advance()
        return wizard_response(entry, result, response)

    @app.post("/register/{wizard_id}/back", response_model=WizardResponse, dependencies=[Depends(api_key_guard)])
    def registration_back(wizard_id: str, response: Response) -> WizardResponse:
        entry = registration_entry(wizard_id)
        result = entry.wizard.retreat()
        return wizard_response(entry, result, response)

    @app.post("/register/{wizard_id}/submit", response_model=WizardResponse, dependencies=[Depends(api_key_guard)])
    async def submit_registration(
        wizard_id: str,
        payload: CredentialsRequest,
        request: Request,
        response: Response,
    ) -> WizardResponse:
        request_id = getattr(request.state, "request_id", "unknown")
        entry = registration_entry(wizard_id)
        if not entry.wizard.is_submitting:
            entry.wizard.update_draft(
                email=payload.email,
                password=payload.password,
                confirm_password=payload.confirm_password,
            )
        result = await entry.wizard.submit()
        if not result.completed:
            return wizard_response(entry, result, response)

        logger.info(f"Cadastro concluído via API: request_id={request_id}, user_id={result.user_id}")
        session_token = None
        try:
            session = await engine.accounts.sign_in(payload.email, payload.password)
            session_token = session.token
        except AccountServiceError as e:
            logger.error(
                f"Conta criada mas login automático falhou: request_id={request_id}, "
                f"user_id={result.user_id}, code={e.code.value}"
            )
        body = wizard_response(
            entry,
            result,
            response,
            redirect_to="/dashboard" if session_token else "/login",
            session_token=session_token,
        )
        engine.discard_registration_wizard(wizard_id)
        return body

    # ------------------------------------------------------------------
    # Sessão
    # ------------------------------------------------------------------

    @app.post("/auth/login", response_model=LoginResponse, dependencies=[Depends(api_key_guard)])
    async def login(payload: LoginRequest) -> LoginResponse:
        try:
            session = await engine.accounts.sign_in(payload.email, payload.password)
        except AccountServiceError:
            raise HTTPException(status_code=401, detail="Email ou senha inválidos.")
        return LoginResponse(session_token=session.token, user_id=session.user_id)

    @app.post("/auth/logout", dependencies=[Depends(api_key_guard)])
    async def logout(session: SessionHandle = Depends(current_session)):
        # Libera o wizard antes de avisar os assinantes da sessão
        engine.close_profile_wizard(session.token)
        await engine.accounts.sign_out(session.token)
        return {"ok": True}

    # ------------------------------------------------------------------
    # Perfil
    # ------------------------------------------------------------------

    @app.get("/profile", response_model=ProfileResponse, dependencies=[Depends(api_key_guard)])
    async def get_profile(session: SessionHandle = Depends(current_session)) -> ProfileResponse:
        entry = await engine.get_profile_wizard(session)
        wizard = entry.wizard
        return ProfileResponse(
            personal=wizard.personal_info,
            professional=wizard.professional_info,
            financial=wizard.financial_info,
            step=wizard.step,
            toasts=to_toasts(entry.notifier.drain()),
        )

    @app.put("/profile/personal", response_model=WizardResponse, dependencies=[Depends(api_key_guard)])
    async def save_personal(
        payload: PersonalInfo,
        response: Response,
        session: SessionHandle = Depends(current_session),
    ) -> WizardResponse:
        entry = await engine.get_profile_wizard(session)
        result = await entry.wizard.save_personal_info(session, payload)
        return wizard_response(entry, result, response)

    @app.put("/profile/professional", response_model=WizardResponse, dependencies=[Depends(api_key_guard)])
    async def save_professional(
        payload: ProfessionalInfo,
        response: Response,
        session: SessionHandle = Depends(current_session),
    ) -> WizardResponse:
        entry = await engine.get_profile_wizard(session)
        result = await entry.wizard.save_professional_info(session, payload)
        return wizard_response(entry, result, response)

    @app.put("/profile/financial", response_model=WizardResponse, dependencies=[Depends(api_key_guard)])
    async def save_financial(
        payload: FinancialInfo,
        response: Response,
        session: SessionHandle = Depends(current_session),
    ) -> WizardResponse:
        entry = await engine.get_profile_wizard(session)
        result = await entry.wizard.save_financial_info(session, payload)
        return wizard_response(entry, result, response)

    @app.get("/profile/documents", response_model=ChecklistResponse, dependencies=[Depends(api_key_guard)])
    async def get_documents(session: SessionHandle = Depends(current_session)) -> ChecklistResponse:
        entry = await engine.get_profile_wizard(session)
        return ChecklistResponse(
            step=entry.wizard.step,
            groups=entry.wizard.checklist_status(),
            toasts=to_toasts(entry.notifier.drain()),
        )

    @app.put("/profile/documents/{key}", response_model=WizardResponse, dependencies=[Depends(api_key_guard)])
    async def set_document(
        key: str,
        payload: DocumentUploadRequest,
        request: Request,
        response: Response,
        session: SessionHandle = Depends(current_session),
    ) -> WizardResponse:
        request_id = getattr(request.state, "request_id", "unknown")

        # Validar tamanho do base64 ANTES de decodificar
        base64_length = len(payload.content_base64)
        if base64_length > config.max_document_base64_chars:
            logger.warning(
                f"Payload base64 muito grande: request_id={request_id}, "
                f"size={base64_length}, max={config.max_document_base64_chars}"
            )
            raise HTTPException(
                status_code=413,
                detail=f"Payload muito grande. Tamanho máximo: {config.max_document_base64_chars} caracteres (base64).",
            )

        try:
            content = base64.b64decode(payload.content_base64, validate=True)
        except (binascii.Error, ValueError) as decode_error:
            logger.error(
                f"Erro ao decodificar base64: request_id={request_id}, "
                f"error={type(decode_error).__name__}: {decode_error}"
            )
            raise HTTPException(
                status_code=400,
                detail="Erro ao decodificar base64. Verifique o arquivo enviado.",
            )

        entry = await engine.get_profile_wizard(session)
        file = UploadedFile.from_bytes(payload.file_name, payload.content_type, content)
        result = entry.wizard.set_document(key, file)
        return wizard_response(entry, result, response)

    @app.post("/profile/documents/next", response_model=WizardResponse, dependencies=[Depends(api_key_guard)])
    async def documents_next(response: Response, session: SessionHandle = Depends(current_session)) -> WizardResponse:
        entry = await engine.get_profile_wizard(session)
        return wizard_response(entry, entry.wizard.advance(), response)

    @app.post("/profile/documents/back", response_model=WizardResponse, dependencies=[Depends(api_key_guard)])
    async def documents_back(response: Response, session: SessionHandle = Depends(current_session)) -> WizardResponse:
        entry = await engine.get_profile_wizard(session)
        return wizard_response(entry, entry.wizard.retreat(), response)

    @app.post("/profile/documents/finish", response_model=WizardResponse, dependencies=[Depends(api_key_guard)])
    async def documents_finish(response: Response, session: SessionHandle = Depends(current_session)) -> WizardResponse:
        entry = await engine.get_profile_wizard(session)
        result = await entry.wizard.finish_early(session)
        return wizard_response(entry, result, response)

    @app.post("/profile/documents/submit", response_model=WizardResponse, dependencies=[Depends(api_key_guard)])
    async def documents_submit(response: Response, session: SessionHandle = Depends(current_session)) -> WizardResponse:
        entry = await engine.get_profile_wizard(session)
        result = await entry.wizard.submit(session)
        return wizard_response(entry, result, response)

    @app.get("/files/{path:path}", dependencies=[Depends(api_key_guard)])
    def get_file(path: str, session: SessionHandle = Depends(current_session)):
        """
        Serve um documento enviado. Cada usuário só acessa os próprios arquivos.
        """
        if not path.startswith(f"documents/{session.user_id}/"):
            raise HTTPException(status_code=403, detail="Acesso negado")
        try:
            target = engine.resolve_file(path)
        except StorageError:
            raise HTTPException(status_code=400, detail="Caminho inválido")
        if not target.is_file():
            raise HTTPException(status_code=404, detail="Documento não encontrado")
        return FileResponse(target)

    return app
