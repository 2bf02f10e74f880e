# services/carrier_policy.py
"""
Per-carrier porting policy and completion estimates.

The policy table is looked up through any object exposing ``policy_for(name)``,
and the estimator takes its business-number and complex-carrier classification
as plain callables, so both can be swapped without touching the porting flow.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from models2.porting_request import DocumentType
from utils.utils import utcnow

DEFAULT_ESTIMATED_DAYS = 7
BUSINESS_NUMBER_EXTRA_DAYS = 1
COMPLEX_CARRIER_EXTRA_DAYS = 2
COMPLEX_CARRIERS = ("sprint", "boost", "cricket")


@dataclass(frozen=True)
class CarrierPolicy:
    name: str
    estimated_days: int
    required_document_types: Tuple[DocumentType, ...]
    special_requirements: Tuple[str, ...] = ()


@dataclass
class PortingEstimate:
    estimated_days: int
    estimated_completion: datetime
    factors: List[str] = field(default_factory=list)


def normalize_carrier_name(carrier_name: Optional[str]) -> str:
    """Lowercase and join words with dashes: 'T Mobile' -> 't-mobile'."""
    return re.sub(r"\s+", "-", (carrier_name or "").strip().lower())


_BILL_AND_AUTHORIZATION = (DocumentType.BILL, DocumentType.AUTHORIZATION)

_AT_AND_T = CarrierPolicy(name="AT&T", estimated_days=5, required_document_types=_BILL_AND_AUTHORIZATION)

DEFAULT_CARRIER_POLICIES: Dict[str, CarrierPolicy] = {
    "verizon": CarrierPolicy(
        name="Verizon",
        estimated_days=3,
        required_document_types=_BILL_AND_AUTHORIZATION,
        special_requirements=("Account must be in good standing",),
    ),
    "att": _AT_AND_T,
    "at&t": _AT_AND_T,
    "t-mobile": CarrierPolicy(name="T-Mobile", estimated_days=2, required_document_types=_BILL_AND_AUTHORIZATION),
    "sprint": CarrierPolicy(
        name="Sprint",
        estimated_days=4,
        required_document_types=_BILL_AND_AUTHORIZATION + (DocumentType.IDENTIFICATION,),
    ),
}


class CarrierPolicyTable:
    """Static carrier policy lookup with a conservative fallback for unknown carriers."""

    def __init__(self, policies: Optional[Dict[str, CarrierPolicy]] = None):
        source = DEFAULT_CARRIER_POLICIES if policies is None else policies
        self._policies = {normalize_carrier_name(key): policy for key, policy in source.items()}

    def policy_for(self, carrier_name: str) -> CarrierPolicy:
        policy = self._policies.get(normalize_carrier_name(carrier_name))
        if policy is not None:
            return policy
        return CarrierPolicy(
            name=carrier_name,
            estimated_days=DEFAULT_ESTIMATED_DAYS,
            required_document_types=_BILL_AND_AUTHORIZATION,
        )


def never_business_number(phone_number: str) -> bool:
    # No business-number registry is wired in yet
    return False


def is_listed_complex_carrier(carrier_name: str) -> bool:
    name = (carrier_name or "").lower()
    return any(carrier in name for carrier in COMPLEX_CARRIERS)


class PortingEstimator:
    """Computes how long a port is expected to take and why."""

    def __init__(
        self,
        policy_provider,
        is_business_number: Optional[Callable[[str], bool]] = None,
        is_complex_carrier: Optional[Callable[[str], bool]] = None,
    ):
        self.policy_provider = policy_provider
        self.is_business_number = is_business_number or never_business_number
        self.is_complex_carrier = is_complex_carrier or is_listed_complex_carrier

    def estimate_completion(self, carrier_name: str, phone_number: str,
                            now: Optional[datetime] = None) -> PortingEstimate:
        policy = self.policy_provider.policy_for(carrier_name)
        days = policy.estimated_days
        factors = []

        if self.is_business_number(phone_number):
            days += BUSINESS_NUMBER_EXTRA_DAYS
            factors.append("Business number may require additional verification")

        if self.is_complex_carrier(carrier_name):
            days += COMPLEX_CARRIER_EXTRA_DAYS
            factors.append("Carrier requires additional processing time")

        start = now or utcnow()
        return PortingEstimate(
            estimated_days=days,
            estimated_completion=start + timedelta(days=days),
            factors=factors,
        )
