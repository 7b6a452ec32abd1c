"""Static fact extraction from contract, logic, helper and test sources."""

from fluxgate.extract.contract import (
    contract_body,
    contract_import_statements,
    extract_contract_facts,
)
from fluxgate.extract.scanner import find_block, quoted_pairs, quoted_strings
from fluxgate.extract.source import (
    extract_exports,
    extract_logic_facts,
    extract_test_names,
    normalize_test_name,
)

__all__ = [
    "contract_body",
    "contract_import_statements",
    "extract_contract_facts",
    "extract_exports",
    "extract_logic_facts",
    "extract_test_names",
    "find_block",
    "normalize_test_name",
    "quoted_pairs",
    "quoted_strings",
]
