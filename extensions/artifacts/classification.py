"""
Contract classification and ordering.
"""

from .contract import ContractKind, ContractRecord, normalize_bytecode, EMPTY_BYTECODE


# Interfaces sort ahead of implementations
KIND_ORDER = {
    ContractKind.INTERFACE: 0,
    ContractKind.CONTRACT: 1,
}


def classify(bytecode: str | None) -> ContractKind:
    """Classify a unit by its creation bytecode.

    Empty or absent bytecode (``""``, ``"0x"``, ``None``) means the unit has
    no executable code and is an interface.
    """
    if normalize_bytecode(bytecode) == EMPTY_BYTECODE:
        return ContractKind.INTERFACE
    return ContractKind.CONTRACT


def order_contracts(contracts: list[ContractRecord]) -> list[ContractRecord]:
    """Stable sort putting every interface before every contract."""
    return sorted(contracts, key=lambda contract: KIND_ORDER[contract.kind])
