"""
Badge catalog and evaluator.

The catalog is a registry of badge definitions. Ledger-driven badges carry a
predicate over the donor's ledger facts; event-driven badges (``completer``)
carry none and are only ever granted by the achievement unlocker.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from donation_ledger.services.ledger import LedgerFacts

CUMULATED_100_THRESHOLD = 100
CUMULATED_1000_THRESHOLD = 1000
LOYALTY_DONATION_COUNT = 10

# predicate(facts, association_id of the donation just recorded)
BadgePredicate = Callable[[LedgerFacts, str], bool]


class BadgeId(str, Enum):
    FIRST_DONATION = "first_donation"
    CUMULATED_100 = "cumulated_100"
    CUMULATED_1000 = "cumulated_1000"
    LOYALTY = "loyalty"
    COMPLETER = "completer"


@dataclass(frozen=True)
class BadgeDefinition:
    id: str
    display_name: str
    image_ref: str
    description: str
    predicate: Optional[BadgePredicate] = None

    @property
    def event_driven(self) -> bool:
        return self.predicate is None

    def qualifies(self, facts: LedgerFacts, association_id: str) -> bool:
        return self.predicate is not None and self.predicate(facts, association_id)


class BadgeCatalog:
    """Ordered registry of badge definitions.

    Iteration order is registration order; it is the order in which newly
    unlocked badges are revealed to the donor.
    """

    def __init__(self, definitions: Iterable[BadgeDefinition] = ()):
        self._definitions: Dict[str, BadgeDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: BadgeDefinition) -> BadgeDefinition:
        if definition.id in self._definitions:
            raise ValueError(f"Badge '{definition.id}' is already registered")
        self._definitions[definition.id] = definition
        return definition

    def get(self, badge_id: str) -> Optional[BadgeDefinition]:
        return self._definitions.get(badge_id)

    def ids(self) -> List[str]:
        return list(self._definitions)

    def ordered(self, badge_ids: Iterable[str]) -> List[BadgeDefinition]:
        """Known definitions among badge_ids, in catalog order"""
        wanted = set(badge_ids)
        return [d for d in self._definitions.values() if d.id in wanted]

    def __iter__(self) -> Iterator[BadgeDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, badge_id: object) -> bool:
        return badge_id in self._definitions


def default_catalog() -> BadgeCatalog:
    return BadgeCatalog([
        BadgeDefinition(
            id=BadgeId.FIRST_DONATION.value,
            display_name="First donation",
            image_ref="badges/first_donation.png",
            description="Made a first donation",
            predicate=lambda facts, _: facts.donation_count == 1,
        ),
        BadgeDefinition(
            id=BadgeId.CUMULATED_100.value,
            display_name="Generous donor",
            image_ref="badges/cumulated_100.png",
            description=f"Gave {CUMULATED_100_THRESHOLD} or more in total",
            predicate=lambda facts, _: facts.total_amount >= CUMULATED_100_THRESHOLD,
        ),
        BadgeDefinition(
            id=BadgeId.CUMULATED_1000.value,
            display_name="Benefactor",
            image_ref="badges/cumulated_1000.png",
            description=f"Gave {CUMULATED_1000_THRESHOLD} or more in total",
            predicate=lambda facts, _: facts.total_amount >= CUMULATED_1000_THRESHOLD,
        ),
        BadgeDefinition(
            id=BadgeId.LOYALTY.value,
            display_name="Loyal supporter",
            image_ref="badges/loyalty.png",
            description=f"Made {LOYALTY_DONATION_COUNT} donations to the same association",
            predicate=lambda facts, association_id: facts.count_for(association_id) >= LOYALTY_DONATION_COUNT,
        ),
        BadgeDefinition(
            id=BadgeId.COMPLETER.value,
            display_name="Goal reached",
            image_ref="badges/completer.png",
            description="Completed an association's fundraising goal",
        ),
    ])


# Global catalog used by the service
badge_catalog = default_catalog()


def evaluate_badges(facts: LedgerFacts,
                    association_id: str,
                    current_badges: Iterable[str],
                    catalog: BadgeCatalog = badge_catalog) -> List[str]:
    """Ids of the badges that qualify now and are not yet held, in catalog order"""
    held = set(current_badges)
    return [
        definition.id
        for definition in catalog
        if definition.id not in held and definition.qualifies(facts, association_id)
    ]
