"""Baby profile enums."""

from enum import Enum


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"

    @classmethod
    def normalize(cls, value: str) -> "Gender":
        """Accept any casing ("male", "MALE") and return the canonical member."""
        normalized = value.strip().capitalize()
        return cls(normalized)


class BloodType(str, Enum):
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"
    UNKNOWN = "Unknown"


class CaregiverRelationship(str, Enum):
    """How a caregiver is related to the baby."""

    GRANDPARENT = "grandparent"
    BABYSITTER = "babysitter"
    NANNY = "nanny"
    RELATIVE = "relative"
    FRIEND = "friend"
    OTHER = "other"


class MilestoneType(str, Enum):
    PHYSICAL = "physical"
    COGNITIVE = "cognitive"
    SOCIAL = "social"
    LANGUAGE = "language"
    MOTOR = "motor"


class FeedingType(str, Enum):
    BREASTFEEDING = "breastfeeding"
    FORMULA = "formula"
    MIXED = "mixed"
    SOLID = "solid"
