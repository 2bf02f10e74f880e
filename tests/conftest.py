"""
Shared fixtures: an in-memory MongoDB, the porting models and a fully wired
porting service with a stubbed carrier gateway.
"""
from unittest.mock import MagicMock

import mongomock
import pytest

from models import NumberConfigurationModel, PortingRequestModel, VirtualNumberModel
from services.carrier_policy import CarrierPolicyTable
from services.number_activation_service import NumberActivationService
from services.porting_service import PortingService
from utils.utils import create_indexes


@pytest.fixture
def db():
    database = mongomock.MongoClient().number_porting_test
    create_indexes(database)
    return database


@pytest.fixture
def porting_model(db):
    return PortingRequestModel(db)


@pytest.fixture
def number_model(db):
    return VirtualNumberModel(db)


@pytest.fixture
def configuration_model(db):
    return NumberConfigurationModel(db)


@pytest.fixture
def carrier_service():
    carrier = MagicMock()
    carrier.initiate_port.return_value = {"success": True, "submitted": False, "carrier_reference": None}
    return carrier


@pytest.fixture
def activation_service(number_model, configuration_model):
    return NumberActivationService(number_model, configuration_model)


@pytest.fixture
def service(porting_model, number_model, activation_service, carrier_service):
    return PortingService(
        porting_model,
        number_model,
        activation_service,
        carrier_service,
        policy_provider=CarrierPolicyTable(),
    )


@pytest.fixture
def porting_data():
    """A valid Verizon porting payload, in the camelCase shape clients send."""
    return {
        "userId": "user-1",
        "currentNumber": "+12025551234",
        "currentCarrier": "Verizon",
        "accountNumber": "123456789",
        "pin": "1234",
        "authorizedName": "Jane Doe",
        "billingAddress": {
            "street": "1 Main St",
            "city": "Springfield",
            "state": "IL",
            "zipCode": "62701",
            "country": "US",
        },
    }


@pytest.fixture
def app(db):
    from app import create_app

    application = create_app('testing', db=db)
    return application


@pytest.fixture
def client(app):
    return app.test_client()
