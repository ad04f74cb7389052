"""
CSV transaction reports.

Layout (Portuguese headers, as the web client downloads it):

    Data,Descrição,Categoria,Tipo,Valor
    10/01/2024,Salário,Salário,Receita,5000.00

Dates are dd/mm/yyyy, Tipo is Receita or Despesa and Valor is the
unsigned amount with two decimals. pandas does the quoting, so
descriptions with commas, quotes or newlines survive.
"""

import io
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Iterable, Union

import pandas as pd
import structlog
from pydantic import ValidationError as PydanticValidationError

from finance_tracker.errors import ParseError
from finance_tracker.models.finance import (
    Transaction,
    TransactionDraft,
    TransactionType,
)


logger = structlog.get_logger(__name__)

CSV_COLUMNS = ["Data", "Descrição", "Categoria", "Tipo", "Valor"]
CSV_DATE_FORMAT = "%d/%m/%Y"

TYPE_BY_LABEL = {t.label: t for t in TransactionType}


def report_filename(start_date: date, end_date: date) -> str:
    return f"relatorio_{start_date.isoformat()}_a_{end_date.isoformat()}.csv"


def export_csv(transactions: Iterable[Transaction]) -> str:
    """Render transactions as a CSV report, one row each, in the given order."""
    rows = [
        {
            "Data": t.date.strftime(CSV_DATE_FORMAT),
            "Descrição": t.description,
            "Categoria": t.category,
            "Tipo": t.type.label,
            "Valor": f"{t.amount:.2f}",
        }
        for t in transactions
    ]
    df = pd.DataFrame(rows, columns=CSV_COLUMNS)
    return df.to_csv(index=False, lineterminator="\n")


def parse_csv(data: Union[str, bytes], account_id: str) -> list[TransactionDraft]:
    """
    Read a CSV report back into transaction drafts.

    The report carries no account, so every draft is assigned to
    account_id. Tags and credit cards are not part of the layout.

    Raises:
        ParseError: Missing columns, or a row with a bad date, type
            label or amount
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ParseError(f"CSV file is not UTF-8: {e}") from e

    try:
        df = pd.read_csv(io.StringIO(data), dtype=str, keep_default_na=False)
    except pd.errors.EmptyDataError as e:
        raise ParseError("CSV file is empty") from e
    except pd.errors.ParserError as e:
        raise ParseError(f"Malformed CSV: {e}") from e

    df.columns = [c.strip() for c in df.columns]
    missing = [c for c in CSV_COLUMNS if c not in df.columns]
    if missing:
        raise ParseError(f"Missing required columns: {missing}")

    drafts = []
    # Row numbers are 1-based and skip the header line
    for row_number, row in enumerate(df.to_dict("records"), start=2):
        try:
            when = pd.to_datetime(row["Data"].strip(), format=CSV_DATE_FORMAT)
        except (ValueError, TypeError) as e:
            raise ParseError(f"Row {row_number}: bad date '{row['Data']}'") from e
        if pd.isna(when):
            raise ParseError(f"Row {row_number}: missing date")

        label = row["Tipo"].strip()
        if label not in TYPE_BY_LABEL:
            raise ParseError(f"Row {row_number}: unknown type '{label}'")

        try:
            amount = Decimal(row["Valor"].strip())
        except InvalidOperation as e:
            raise ParseError(f"Row {row_number}: bad amount '{row['Valor']}'") from e

        try:
            drafts.append(
                TransactionDraft(
                    description=row["Descrição"],
                    amount=amount,
                    date=when.to_pydatetime(),
                    category=row["Categoria"],
                    type=TYPE_BY_LABEL[label],
                    account_id=account_id,
                )
            )
        except PydanticValidationError as e:
            first = e.errors()[0]
            raise ParseError(f"Row {row_number}: {first['msg']}") from e

    logger.debug("csv_parsed", count=len(drafts))
    return drafts
