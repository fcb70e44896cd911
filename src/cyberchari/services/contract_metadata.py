"""Contract metadata extraction — shallow regex scan of contract source.

This is a pattern matcher, not a parser.  The function pattern matches a
single level of parentheses, so parameter lists with nested parentheses
(default expressions, function-typed parameters) are cut at the first ``)``.
"""

from __future__ import annotations

import re

from cyberchari.domain.entities import ContractInfo

_PRAGMA_RE = re.compile(r"pragma\s+solidity\s+([^;]+);")
_CONTRACT_RE = re.compile(r"contract\s+(\w+)")
_IMPORT_RE = re.compile(r"import\s+[^;]+;")
_FUNCTION_RE = re.compile(r"function\s+\w+\s*\([^)]*\)")


def extract_contract_info(content: str, file_name: str = "") -> ContractInfo:
    """Pull pragma, contract name, imports and function signatures from *content*.

    *file_name* is accepted for callers that have it; extraction depends on
    the text alone.  Missing matches leave the field unset or empty.
    """
    pragma = _PRAGMA_RE.search(content)
    contract = _CONTRACT_RE.search(content)

    return ContractInfo(
        contract_name=contract.group(1) if contract else None,
        pragma_version=pragma.group(1).strip() if pragma else None,
        imports=tuple(m.group(0).strip() for m in _IMPORT_RE.finditer(content)),
        functions=tuple(m.group(0).strip() for m in _FUNCTION_RE.finditer(content)),
    )
