"""
Validation of porting request payloads.

The same function backs both request creation and the dry-run validate
endpoint, so a client previewing a submission sees exactly the errors a real
submission would get.
"""
import re
from typing import Any, Dict, List, Optional, Tuple

from models2.porting_request import PortingValidationResult

E164_PATTERN = re.compile(r'^\+[1-9]\d{1,14}$')

REQUIRED_FIELDS = (
    ('current_carrier', 'Current carrier is required'),
    ('account_number', 'Account number is required'),
    ('pin', 'PIN/Password is required'),
    ('authorized_name', 'Authorized name is required'),
)

ADDRESS_FIELDS = ('street', 'city', 'state', 'zip_code')

NOTES_MAX_LENGTH = 1000

MAX_LENGTHS = (
    ('current_carrier', 100, 'Current carrier must be at most 100 characters'),
    ('account_number', 50, 'Account number must be at most 50 characters'),
    ('pin', 20, 'PIN/Password must be at most 20 characters'),
    ('authorized_name', 100, 'Authorized name must be at most 100 characters'),
    ('notes', NOTES_MAX_LENGTH, f'Notes must be at most {NOTES_MAX_LENGTH} characters'),
)

# (substring of the carrier name, account number pattern, error message)
CARRIER_ACCOUNT_RULES: Tuple[Tuple[str, re.Pattern, str], ...] = (
    ('verizon', re.compile(r'^\d{9,12}$'), 'Verizon account numbers must be 9-12 digits'),
)

_CAMEL_TO_SNAKE = {
    'userId': 'user_id',
    'currentNumber': 'current_number',
    'currentCarrier': 'current_carrier',
    'accountNumber': 'account_number',
    'authorizedName': 'authorized_name',
    'billingAddress': 'billing_address',
    'zipCode': 'zip_code',
}


def _as_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ''


def normalize_porting_payload(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Turn a raw payload (camelCase or snake_case keys) into the snake_case
    shape used everywhere else. Missing or non-text values become ''.
    """
    data = data if isinstance(data, dict) else {}
    flat = {_CAMEL_TO_SNAKE.get(key, key): value for key, value in data.items()}

    raw_address = flat.get('billing_address')
    raw_address = raw_address if isinstance(raw_address, dict) else {}
    address = {_CAMEL_TO_SNAKE.get(key, key): value for key, value in raw_address.items()}

    notes = flat.get('notes')
    return {
        'user_id': _as_text(flat.get('user_id')).strip(),
        'current_number': _as_text(flat.get('current_number')).strip(),
        'current_carrier': _as_text(flat.get('current_carrier')).strip(),
        'account_number': _as_text(flat.get('account_number')).strip(),
        'pin': _as_text(flat.get('pin')).strip(),
        'authorized_name': _as_text(flat.get('authorized_name')).strip(),
        'billing_address': {
            'street': _as_text(address.get('street')).strip(),
            'city': _as_text(address.get('city')).strip(),
            'state': _as_text(address.get('state')).strip(),
            'zip_code': _as_text(address.get('zip_code')).strip(),
            'country': (_as_text(address.get('country')).strip() or 'US').upper(),
        },
        'notes': notes.strip() if isinstance(notes, str) and notes.strip() else None,
    }


def is_valid_phone_number(phone_number: str) -> bool:
    return bool(E164_PATTERN.match(phone_number or ''))


def missing_address_fields(address: Dict[str, Any]) -> List[str]:
    return [name for name in ADDRESS_FIELDS if not _as_text(address.get(name)).strip()]


def validate_carrier_specific_requirements(data: Dict[str, Any], policy_provider) -> PortingValidationResult:
    errors: List[str] = []
    warnings: List[str] = []

    carrier = data['current_carrier']
    if carrier:
        policy = policy_provider.policy_for(carrier)
        warnings.extend(policy.special_requirements)

        lowered = carrier.lower()
        for name, pattern, message in CARRIER_ACCOUNT_RULES:
            if name in lowered and not pattern.match(data['account_number']):
                errors.append(message)

    return PortingValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def validate_porting_request(data: Optional[Dict[str, Any]], number_registry, policy_provider) -> PortingValidationResult:
    """
    Check a porting payload and collect every problem at once.

    Never raises for bad input. The only storage access is the lookup of the
    number in the platform's number registry.
    """
    payload = normalize_porting_payload(data)
    errors: List[str] = []
    warnings: List[str] = []

    if not is_valid_phone_number(payload['current_number']):
        errors.append('Invalid phone number format')

    for name, message in REQUIRED_FIELDS:
        if not payload[name]:
            errors.append(message)

    if missing_address_fields(payload['billing_address']):
        errors.append('Complete billing address is required')

    for name, limit, message in MAX_LENGTHS:
        if payload[name] and len(payload[name]) > limit:
            errors.append(message)

    if payload['current_number'] and number_registry.find_by_phone_number(payload['current_number']):
        errors.append('This number is already in the system')

    carrier_result = validate_carrier_specific_requirements(payload, policy_provider)
    errors.extend(carrier_result.errors)
    warnings.extend(carrier_result.warnings)

    return PortingValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
