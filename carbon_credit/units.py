from decimal import Decimal
from typing import Union
from web3 import Web3

from carbon_credit.errors import ValidationError

# Ledger amounts use 18 decimals, the same scaling as ether/wei
TOKEN_UNIT = "ether"


def to_token_units(amount: Union[int, Decimal, str]) -> int:
    """Scale a human token amount to the ledger's fixed-point integer"""
    try:
        return int(Web3.to_wei(amount, TOKEN_UNIT))
    except ValueError as e:
        # The contract stores uint256, so anything past 2**256 - 1 cannot be sent
        raise ValidationError("Amount exceeds the ledger's range") from e


def from_token_units(value: int) -> Union[int, Decimal]:
    """Scale a ledger amount back to human tokens, as an int when it is whole"""
    amount = Decimal(Web3.from_wei(int(value), TOKEN_UNIT))
    if amount == amount.to_integral_value():
        return int(amount)
    return amount
