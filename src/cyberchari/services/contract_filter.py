"""Contract file filtering — decide which tree entries are smart contracts."""

from __future__ import annotations

from typing import Iterable

from cyberchari.domain.entities import ContractType, TreeEntry

CONTRACT_EXTENSIONS: dict[str, ContractType] = {
    ".sol": ContractType.SOLIDITY,
    ".vy": ContractType.VYPER,
}


def is_contract_path(path: str) -> bool:
    """Case-sensitive suffix match against ``CONTRACT_EXTENSIONS``."""
    return path.endswith(tuple(CONTRACT_EXTENSIONS))


def contract_type_for(path: str) -> ContractType:
    """Return the :class:`ContractType` for a contract path.

    Raises ``ValueError`` when *path* has no recognised extension.
    """
    for ext, contract_type in CONTRACT_EXTENSIONS.items():
        if path.endswith(ext):
            return contract_type
    raise ValueError(f"Not a contract file: {path}")


def file_name_of(path: str) -> str:
    return path.rsplit("/", maxsplit=1)[-1]


def filter_contract_entries(entries: Iterable[TreeEntry]) -> list[TreeEntry]:
    """Keep blob entries whose path is a contract file, in tree order."""
    return [
        entry
        for entry in entries
        if entry.type == "blob" and is_contract_path(entry.path)
    ]
