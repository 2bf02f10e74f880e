# services/carrier_service.py
import logging
from typing import Any, Dict, Optional

import requests

from models2.porting_request import PortingRequest

logger = logging.getLogger(__name__)


class CarrierService:
    """
    Submits approved porting requests to the carrier porting API.

    When no API URL is configured the submission is only recorded in the
    logs, which is how development and test environments run.
    """

    def __init__(self, api_url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: float = 10, session: Optional[requests.Session] = None):
        self.api_url = api_url.rstrip("/") if api_url else None
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> "CarrierService":
        return cls(
            api_url=config.get("CARRIER_API_URL"),
            api_key=config.get("CARRIER_API_KEY"),
            timeout=config.get("CARRIER_API_TIMEOUT", 10),
        )

    def _build_payload(self, porting_request: PortingRequest) -> Dict[str, Any]:
        address = porting_request.billing_address
        return {
            "phone_numbers": [{"phone_number": porting_request.current_number}],
            "customer_reference": porting_request.id,
            "losing_carrier": porting_request.current_carrier,
            "end_user": {
                "account_number": porting_request.account_number,
                "pin_passcode": porting_request.pin,
                "authorized_name": porting_request.authorized_name,
                "service_address": {
                    "street_address": address.street,
                    "locality": address.city,
                    "administrative_area": address.state,
                    "postal_code": address.zip_code,
                    "country_code": address.country,
                },
            },
        }

    def initiate_port(self, porting_request: PortingRequest) -> Dict[str, Any]:
        """Start the porting process with the losing carrier."""

        logger.info(
            f"Initiating carrier porting process for request {porting_request.id} "
            f"({porting_request.current_number}, carrier {porting_request.current_carrier})"
        )

        if not self.api_url:
            logger.info(f"Carrier API not configured; porting request {porting_request.id} recorded locally")
            return {
                "success": True,
                "submitted": False,
                "carrier_reference": None
            }

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = self.session.post(
                f"{self.api_url}/porting_orders",
                json=self._build_payload(porting_request),
                headers=headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            body = response.json() if response.content else {}
            data = body.get("data", body) if isinstance(body, dict) else {}

            return {
                "success": True,
                "submitted": True,
                "carrier_reference": data.get("id") if isinstance(data, dict) else None
            }

        except requests.RequestException as e:
            logger.error(f"Carrier porting submission failed for request {porting_request.id}: {e}")
            return {
                "success": False,
                "error": str(e)
            }