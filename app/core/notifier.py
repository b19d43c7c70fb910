import logging
from typing import List

from .models import Notification, Severity

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """
    Notifier que apenas registra as mensagens no log.
    """

    def notify(self, notification: Notification) -> None:
        if notification.severity == Severity.DESTRUCTIVE:
            logger.warning(
                f"Notificação: title={notification.title}, "
                f"description={notification.description}"
            )
        else:
            logger.info(
                f"Notificação: title={notification.title}, "
                f"description={notification.description}"
            )


class CollectingNotifier(LoggingNotifier):
    """
    Acumula as notificações de uma ação para devolvê-las na resposta HTTP.
    """

    def __init__(self) -> None:
        self._pending: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        super().notify(notification)
        self._pending.append(notification)

    def drain(self) -> List[Notification]:
        pending, self._pending = self._pending, []
        return pending
