import math
from enum import Enum

from membercard.errors import ValidationError
from membercard.utils.time_utils import parse_timestamp


class Tier(Enum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"
    DIAMOND = "Diamond"

    @classmethod
    def parse(cls, value) -> "Tier":
        if isinstance(value, Tier):
            return value
        for tier in cls:
            if str(value).strip().lower() == tier.value.lower():
                return tier
        raise ValidationError(f"Unknown tier: {value}", field="tier")

    @property
    def rank(self) -> int:
        return list(Tier).index(self)


# tier -> (min points, max points, next tier)
TIER_BANDS: dict[Tier, tuple[int, int, Tier | None]] = {
    Tier.BRONZE: (0, 1000, Tier.SILVER),
    Tier.SILVER: (1000, 5000, Tier.GOLD),
    Tier.GOLD: (5000, 20000, Tier.PLATINUM),
    Tier.PLATINUM: (20000, 50000, Tier.DIAMOND),
    Tier.DIAMOND: (50000, 100000, None),
}

STRING_FIELDS = (
    "mm_user",
    "acc_no",
    "bank_id",
    "bank_name",
    "first_name",
    "last_name",
    "tel",
    "email",
    "member_ref",
)
MONEY_FIELDS = (
    "available",
    "credit_limit",
    "bet_credit",
    "total_deposits",
    "total_withdrawals",
)
COUNT_FIELDS = ("points", "total_transactions")
TIMESTAMP_FIELDS = ("register_time", "last_login")
ACCOUNT_FIELDS = (
    STRING_FIELDS + MONEY_FIELDS + COUNT_FIELDS + TIMESTAMP_FIELDS + ("tier", "is_active")
)

# Alternative keys seen in payloads pushed by clients and the console integration
FIELD_ALIASES = {
    "phone": "tel",
    "phone_number": "tel",
    "balance": "available",
    "registerTime": "register_time",
    "lastLogin": "last_login",
    "creditLimit": "credit_limit",
    "betCredit": "bet_credit",
}


def _finite(number: float) -> float:
    if not math.isfinite(number):
        raise ValueError(f"Not a finite number: {number!r}")
    return number


def normalize_account_data(data: dict) -> dict:
    """
    Coerce an observed account payload into column values.

    Unknown keys and null values are dropped so callers get partial-update
    semantics. Malformed values raise ValidationError.
    """
    if not isinstance(data, dict):
        raise ValidationError("Account data must be an object")

    normalized = {}
    for key, value in data.items():
        field = FIELD_ALIASES.get(key, key)
        if value is None or field not in ACCOUNT_FIELDS:
            continue
        # An explicit canonical key wins over its alias
        if field != key and field in data and data[field] is not None:
            continue
        try:
            if field in STRING_FIELDS:
                normalized[field] = str(value).strip()
            elif field in MONEY_FIELDS:
                normalized[field] = _finite(float(str(value).replace(",", "")))
            elif field in COUNT_FIELDS:
                normalized[field] = int(_finite(float(str(value).replace(",", ""))))
            elif field in TIMESTAMP_FIELDS:
                normalized[field] = parse_timestamp(value)
            elif field == "tier":
                normalized[field] = Tier.parse(value).value
            elif field == "is_active":
                normalized[field] = value if isinstance(value, bool) else str(value).lower() in ("true", "1", "yes")
        except (TypeError, ValueError, OverflowError) as e:
            raise ValidationError(f"Invalid value for {field}: {value!r}", field=field) from e
    return normalized


class Account:
    def __init__(
        self,
        username,
        mm_user=None,
        acc_no=None,
        bank_id=None,
        bank_name=None,
        first_name=None,
        last_name=None,
        tel=None,
        email=None,
        available: float = 0.0,
        credit_limit: float = 0.0,
        bet_credit: float = 0.0,
        tier: str = Tier.BRONZE.value,
        points: int = 0,
        total_transactions: int = 0,
        total_deposits: float = 0.0,
        total_withdrawals: float = 0.0,
        member_ref=None,
        register_time=None,
        last_login=None,
        is_active: bool = True,
        created_at=None,
        updated_at=None,
    ):
        self.username = username
        self.mm_user = mm_user
        self.acc_no = acc_no
        self.bank_id = bank_id
        self.bank_name = bank_name
        self.first_name = first_name
        self.last_name = last_name
        self.tel = tel
        self.email = email
        self.available = available or 0.0
        self.credit_limit = credit_limit or 0.0
        self.bet_credit = bet_credit or 0.0
        self.tier = tier or Tier.BRONZE.value
        self.points = points or 0
        self.total_transactions = total_transactions or 0
        self.total_deposits = total_deposits or 0.0
        self.total_withdrawals = total_withdrawals or 0.0
        self.member_ref = member_ref
        self.register_time = register_time
        self.last_login = last_login
        self.is_active = is_active
        self.created_at = created_at
        self.updated_at = updated_at

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name or self.username

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "mm_user": self.mm_user,
            "display_name": self.display_name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "tel": self.tel,
            "email": self.email,
            "bank_id": self.bank_id,
            "bank_name": self.bank_name,
            "acc_no": self.acc_no,
            "available": self.available,
            "credit_limit": self.credit_limit,
            "bet_credit": self.bet_credit,
            "tier": self.tier,
            "points": self.points,
            "total_transactions": self.total_transactions,
            "total_deposits": self.total_deposits,
            "total_withdrawals": self.total_withdrawals,
            "member_ref": self.member_ref,
            "register_time": self.register_time,
            "last_login": self.last_login,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
