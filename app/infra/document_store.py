import asyncio
import logging
from pathlib import Path, PurePosixPath
from urllib.parse import quote
from ..core.errors import StorageError

logger = logging.getLogger(__name__)


class LocalDocumentStore:
    """
    DocumentStore em disco local.
    Em produção, isso seria substituído por um storage gerenciado.

    Arquivos ficam em {storage_dir}/{path} e são servidos pela rota /files.
    """

    def __init__(self, storage_dir: str, public_base_url: str) -> None:
        self._root = Path(storage_dir).resolve()
        self._public_base_url = public_base_url.rstrip("/")

    def resolve(self, path: str) -> Path:
        """
        Converte o caminho lógico em caminho no disco, sem sair da raiz.
        """
        parts = PurePosixPath(path).parts
        if not parts or path.startswith("/") or any(part in ("..", ".") for part in parts):
            raise StorageError(f"Caminho de documento inválido: {path}")
        return self._root.joinpath(*parts)

    def _write_sync(self, target: Path, content: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".part")
        tmp.write_bytes(content)
        tmp.replace(target)

    async def upload(self, path: str, content: bytes, content_type: str) -> None:
        target = self.resolve(path)
        try:
            await asyncio.to_thread(self._write_sync, target, content)
        except OSError as e:
            logger.error(f"Erro ao gravar documento: path={path}, error={e}")
            raise StorageError(f"Falha ao gravar {path}: {e}") from e
        logger.debug(f"Documento gravado: path={path}, size={len(content)}, content_type={content_type}")

    async def get_retrieval_url(self, path: str) -> str:
        target = self.resolve(path)
        if not target.is_file():
            raise StorageError(f"Documento não encontrado: {path}")
        return f"{self._public_base_url}/files/{quote(path)}"
