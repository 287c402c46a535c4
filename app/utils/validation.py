"""Wallet and amount validation utilities."""

from decimal import Decimal, InvalidOperation

from eth_utils import is_hex_address

from app.utils.exceptions import ValidationError


# Zero address - never a real referrer or referee
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def validate_wallet_address(address: str) -> tuple[bool, str | None]:
    """
    Validate an EVM wallet address (0x + 40 hex chars).

    Checksum casing is not enforced; addresses are stored lowercase.

    Args:
        address: Wallet address to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not address or not isinstance(address, str):
        return False, "Address is empty"

    address = address.strip()

    if not address.startswith("0x"):
        return False, "Address must start with 0x"

    if len(address) != 42:
        return False, "Address must be 42 characters"

    if not is_hex_address(address):
        return False, "Invalid address format"

    if address.lower() == ZERO_ADDRESS:
        return False, "Zero address is not allowed"

    return True, None


def normalize_wallet_address(address: str) -> str:
    """
    Validate and lowercase a wallet address.

    Args:
        address: Wallet address

    Returns:
        Lowercased address

    Raises:
        ValidationError: If address is invalid
    """
    is_valid, error = validate_wallet_address(address)
    if not is_valid:
        raise ValidationError(
            f"Invalid wallet address: {error}",
            issues=[{"field": "address", "message": error or "invalid"}],
        )
    return address.strip().lower()


def to_decimal(value: Decimal | int | float | str, field: str) -> Decimal:
    """
    Convert a numeric input to Decimal.

    Floats go through str() so 0.1 stays 0.1.

    Raises:
        ValidationError: If value is not numeric
    """
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(
            f"{field} must be numeric",
            issues=[{"field": field, "message": "must be numeric"}],
        ) from e


def validate_volume(volume: Decimal | int | float | str) -> Decimal:
    """
    Validate a trade volume.

    Args:
        volume: Trade size reported by the trading subsystem

    Returns:
        Volume as Decimal

    Raises:
        ValidationError: If volume is negative or not numeric
    """
    amount = to_decimal(volume, "volume")
    if not amount.is_finite() or amount < 0:
        raise ValidationError(
            "Trade volume must be a non-negative number",
            issues=[{"field": "volume", "message": "must be >= 0"}],
        )
    return amount
