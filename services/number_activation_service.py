# services/number_activation_service.py
"""
Materializes a successfully ported number as a platform-owned number.

Creating the number record, activating it and creating its default routing
configuration touch separate collections with no shared transaction. Each step
that succeeded registers how to undo itself; if a later step fails, the undo
actions run newest first and the failure is raised as ActivationError.
"""
import logging
from typing import Callable, List, Tuple

from models2.porting_request import PortingRequest
from models2.virtual_number import NumberConfiguration, NumberStatus, VirtualNumber
from utils.errors import ActivationError

logger = logging.getLogger(__name__)

# E.164 prefix -> ISO country code
COUNTRY_PREFIXES = (
    ("+1", "US"),
    ("+44", "GB"),
    ("+33", "FR"),
)


def extract_country_code(phone_number: str) -> str:
    for prefix, country in COUNTRY_PREFIXES:
        if phone_number.startswith(prefix):
            return country
    return "US"


def extract_area_code(phone_number: str) -> str:
    # Only North American numbers carry a fixed 3-digit area code
    if phone_number.startswith("+1") and len(phone_number) == 12:
        return phone_number[2:5]
    return "000"


class NumberActivationService:

    def __init__(self, number_model, configuration_model, monthly_rate: int = 1000):
        self.number_model = number_model
        self.configuration_model = configuration_model
        self.monthly_rate = monthly_rate

    def activate_ported_number(self, porting_request: PortingRequest) -> Tuple[VirtualNumber, NumberConfiguration]:
        """Create, activate and configure the number a completed port brought in."""
        compensations: List[Tuple[str, Callable[[], object]]] = []

        try:
            number = self.number_model.create(VirtualNumber(
                phone_number=porting_request.current_number,
                owner_id=porting_request.user_id,
                country_code=extract_country_code(porting_request.current_number),
                area_code=extract_area_code(porting_request.current_number),
                city="Ported Number",
                region="Various",
                monthly_rate=self.monthly_rate,
                setup_fee=0,  # No setup fee for ported numbers
                features=["VOICE", "SMS"],
                porting_request_id=porting_request.id,
            ))
            compensations.append(("delete number record", lambda number_id=number.id: self.number_model.delete(number_id)))

            number = self.number_model.update_status(number.id, NumberStatus.ACTIVE.value)

            configuration = self.configuration_model.create_default_configuration(number.id)

        except Exception as e:
            logger.error(f"Failed to activate ported number for porting request {porting_request.id}: {e}")
            self._compensate(porting_request, compensations)
            raise ActivationError(
                f"Failed to activate ported number {porting_request.current_number}: {e}"
            ) from e

        logger.info(
            f"Ported number activated: porting request {porting_request.id}, "
            f"virtual number {number.id}, phone number {number.phone_number}"
        )
        return number, configuration

    def _compensate(self, porting_request: PortingRequest, compensations) -> None:
        for name, undo in reversed(compensations):
            try:
                undo()
                logger.info(f"Compensation '{name}' applied for porting request {porting_request.id}")
            except Exception:
                # Keep undoing the remaining steps; the leftover needs manual cleanup
                logger.exception(f"Compensation '{name}' failed for porting request {porting_request.id}")
