from abc import ABC, abstractmethod
from typing import List, Optional

from data_contracts.models import (
    Prescription,
    Formula,
    Module,
    Supply,
)


class PrescriptionRepository(ABC):

    @abstractmethod
    def get_prescriptions(
        self,
        ward: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Prescription]:
        pass


class CatalogRepository(ABC):

    @abstractmethod
    def get_formulas(self) -> List[Formula]:
        pass

    @abstractmethod
    def get_modules(self) -> List[Module]:
        pass

    @abstractmethod
    def get_supplies(self) -> List[Supply]:
        pass
