from loguru import logger

from parkpass.application.ports import AbstractNotifier


class LoguruNotifier(AbstractNotifier):
    """Records driver notifications in the log; delivery to devices happens elsewhere."""

    async def notify(self, user_id: str, title: str, message: str, kind: str = "booking_update") -> None:
        logger.bind(notification=kind, user_id=user_id).info(f"{title}: {message}")
