"""Choice sets used by membership categories.

Member names are the internal (and JSON) representation; member values
are the integer option codes used in storage.
"""

from enum import Enum


class Category(Enum):
    OT_PR = 1  # OT practising
    OT_NP = 2  # OT non-practising
    OT_RET = 3  # OT retired
    OT_NG = 4  # OT new graduate
    OT_STU = 5  # OT student
    OT_LIFE = 6  # OT life member
    OTA_PR = 7
    OTA_NP = 8
    OTA_RET = 9
    OTA_NG = 10
    OTA_STU = 11
    OTA_LIFE = 12
    ASSOC = 13  # Associate
    AFF_PRIM = 14  # Affiliate primary
    AFF_PREM = 15  # Affiliate premium


class AccountEligibility(Enum):
    """Eligibility answers for individual (account) members."""

    NONE = 0
    Q1 = 1  # Practising
    Q2 = 2  # Non-practising
    Q3 = 3  # OTA practising
    Q4 = 4  # OTA non-practising
    Q5 = 5  # Retired or resigned
    Q6 = 6  # On parental leave
    Q7 = 7  # Life member


class AffiliateEligibility(Enum):
    """Eligibility answers for organisational (affiliate) members."""

    PRIMARY = 1
    PREMIUM = 2


class UserGroup(Enum):
    OT = 1
    OTA = 2
    OT_STUDENT = 3
    OTA_STUDENT = 4
    OT_STUDENT_NEW_GRAD = 5
    OTA_STUDENT_NEW_GRAD = 6
    VENDOR_ADVERTISER_RECRUITER = 7
    OTHER = 8
    AFFILIATE = 9


class ParentalLeaveExpected(Enum):
    FULL_YEAR = 1
    SIX_MONTHS = 2


class Privilege(Enum):
    OWNER = 1
    ADMIN = 2
    MAIN = 3


class AccessModifier(Enum):
    PUBLIC = 0
    PROTECTED = 1
    PRIVATE = 2


class Status(Enum):
    ACTIVE = 0
    INACTIVE = 1
