from abc import ABC, abstractmethod


class AbstractOCRProvider(ABC):
    """Turns a stored slip image into text. The engine only ever sees the text."""

    @abstractmethod
    async def extract_text(self, image_url: str) -> str:
        pass


class AbstractNotifier(ABC):
    @abstractmethod
    async def notify(self, user_id: str, title: str, message: str, kind: str = "booking_update") -> None:
        pass
