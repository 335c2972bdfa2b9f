from abc import ABC, abstractmethod

from core.schemas.enums import Platform
from core.schemas.messages import ExtractionResult


class DetailExtractor(ABC):
    """
    Interface for product detail extraction.
    """

    @abstractmethod
    async def extract(self, page, platform: Platform) -> ExtractionResult:
        """
        Reads detail fields from a loaded product page.
        :param page: Playwright page already on the product URL
        :param platform: Marketplace the page belongs to
        :return: ExtractionResult with raw fields and a 0-100 completeness score
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass
