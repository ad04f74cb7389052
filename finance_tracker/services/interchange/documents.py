"""
JSON transaction documents.

The export is a plain JSON array of camelCase transaction objects, the
same file the web client offers as a download. Importing that file back
yields the same transactions (ids are re-minted by the ledger).
"""

import json
from typing import Iterable, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from finance_tracker.errors import ParseError
from finance_tracker.models.finance import Transaction, new_id


logger = structlog.get_logger(__name__)

EXPORT_FILENAME = "transacoes_meu_financeiro.json"


def export_transactions(transactions: Iterable[Transaction]) -> str:
    """Serialize transactions to a JSON array, in the given order."""
    documents = [t.to_document() for t in transactions]
    return json.dumps(documents, ensure_ascii=False, indent=2)


def parse_transactions(data: Union[str, bytes]) -> list[Transaction]:
    """
    Parse an exported document back into transactions.

    Nothing is partially returned: the whole document parses or a
    ParseError is raised. An element without an id gets a provisional
    one.

    Raises:
        ParseError: Malformed JSON, a root that is not an array, or an
            element that is not a valid transaction
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ParseError(f"Import file is not UTF-8: {e}") from e

    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e.msg} (line {e.lineno})") from e

    if not isinstance(payload, list):
        raise ParseError("Expected a JSON array of transactions")

    transactions = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ParseError(f"Element {index} is not an object")
        if not item.get("id"):
            item = {**item, "id": new_id()}
        try:
            transactions.append(Transaction.model_validate(item))
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"]) or "value"
            raise ParseError(
                f"Element {index} is not a valid transaction: {location}: {first['msg']}"
            ) from e

    logger.debug("transactions_parsed", count=len(transactions))
    return transactions
