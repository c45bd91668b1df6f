from enum import Enum


class Tier(str, Enum):
    ADMINISTRATOR = "administrator"
    AGENCY = "agency"
    ORGANIZATION = "organization"
    ADMIN = "admin"
    GENERAL = "general"


# Lower rank = higher privilege.
TIER_RANKS: dict[Tier, int] = {
    Tier.ADMINISTRATOR: 0,
    Tier.AGENCY: 1,
    Tier.ORGANIZATION: 2,
    Tier.ADMIN: 3,
    Tier.GENERAL: 4,
}


def rank(tier: Tier) -> int:
    return TIER_RANKS[Tier(tier)]


def outranks(a: Tier, b: Tier) -> bool:
    """True iff ``a`` holds strictly more privilege than ``b``."""
    return rank(a) < rank(b)
