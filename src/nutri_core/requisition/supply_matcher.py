import logging
from typing import List, Optional

from data_contracts.models import Supply, SupplyType, InfusionMode

logger = logging.getLogger(__name__)

# infusion mode -> name keywords, searched in order
INFUSION_SET_KEYWORDS = {
    InfusionMode.pump: ("bomba", "pump"),
    InfusionMode.gravity: ("gravitacional", "gravity"),
}


class SupplyMatcher:
    """
    Infers the consumables implied by a prescription.
    Prescriptions carry no explicit supply link, so matching is by name
    keyword, then by supply type; the first catalog entry wins.
    """

    def __init__(self, supplies: List[Supply]):
        self.supplies = list(supplies)

    def infusion_set(self, infusion_mode) -> Optional[Supply]:
        if infusion_mode is None:
            return None

        keywords = INFUSION_SET_KEYWORDS.get(InfusionMode(infusion_mode))
        if not keywords:
            return None

        for keyword in keywords:
            for supply in self.supplies:
                if keyword in supply.name.lower():
                    return supply

        fallback = self.first_of_type(SupplyType.set)
        if fallback is None:
            logger.warning("no infusion set in supply catalog for mode=%s", infusion_mode)
        return fallback

    def bottle(self) -> Optional[Supply]:
        supply = self.first_of_type(SupplyType.bottle)
        if supply is None:
            logger.warning("no bottle in supply catalog")
        return supply

    def first_of_type(self, supply_type: SupplyType) -> Optional[Supply]:
        return next(
            (s for s in self.supplies if s.type == supply_type),
            None
        )
