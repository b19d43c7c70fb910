from dataclasses import dataclass
from typing import Optional

from .errors import WizardError


@dataclass
class WizardResult:
    """
    Resultado de uma ação de wizard, já reportada ao Notifier.

    Não é a resposta final ao usuário; a camada HTTP usa isso para
    escolher o status e montar o corpo.
    """
    ok: bool
    step: int
    error: Optional[WizardError] = None
    # Ação ignorada porque outra do mesmo wizard ainda está em andamento
    suppressed: bool = False
    # Cadastro concluído: quem chamou é responsável pela navegação
    completed: bool = False
    user_id: Optional[str] = None
