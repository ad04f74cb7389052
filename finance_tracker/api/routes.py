"""
REST routes, all mounted under /api.

Bodies and responses use the camelCase documents of the models. Request
bodies arrive as plain objects and are validated by the ledger, so a bad
payload produces the same {success: false, error} answer as any other
rejected operation.
"""

from datetime import date
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import Response

from finance_tracker.config import Settings
from finance_tracker.errors import ParseError, ValidationError
from finance_tracker.ledger import LedgerEngine
from finance_tracker.queries import (
    cash_flow_series,
    category_breakdown,
    credit_card_breakdown,
    filter_transactions,
    format_currency,
    monthly_summary,
    tag_breakdown,
    upcoming_card_dues,
)
from finance_tracker.services.interchange import (
    EXPORT_FILENAME,
    export_csv,
    export_transactions,
    parse_csv,
    parse_transactions,
    report_filename,
)


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api")


def get_ledger(request: Request) -> LedgerEngine:
    return request.app.state.ledger


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _documents(entities) -> list[dict]:
    return [e.to_document() for e in entities]


async def _read_upload(request: Request, settings: Settings) -> bytes:
    data = await request.body()
    limit = settings.app.max_import_size_bytes
    if len(data) > limit:
        raise ParseError(
            f"Import file too large ({len(data)} bytes, limit {settings.app.max_import_size_mb} MB)"
        )
    if not data.strip():
        raise ParseError("Import file is empty")
    return data


# =============================================================================
# HEALTH
# =============================================================================

@router.get("/health")
def health(ledger: LedgerEngine = Depends(get_ledger)):
    return {"status": "ok", "loaded": ledger.is_loaded}


# =============================================================================
# TRANSACTIONS
# =============================================================================

@router.get("/transactions")
def list_transactions(ledger: LedgerEngine = Depends(get_ledger)):
    transactions = sorted(ledger.transactions, key=lambda t: t.date, reverse=True)
    return _documents(transactions)


@router.post("/transactions")
async def create_transaction(
    payload: dict[str, Any] = Body(...),
    ledger: LedgerEngine = Depends(get_ledger),
):
    transaction = await ledger.add_transaction(payload)
    return {"success": True, "id": transaction.id}


@router.put("/transactions/{transaction_id}")
async def update_transaction(
    transaction_id: str,
    payload: dict[str, Any] = Body(...),
    ledger: LedgerEngine = Depends(get_ledger),
):
    await ledger.update_transaction(transaction_id, payload)
    return {"success": True}


@router.delete("/transactions/{transaction_id}")
async def delete_transaction(transaction_id: str, ledger: LedgerEngine = Depends(get_ledger)):
    await ledger.delete_transaction(transaction_id)
    return {"success": True}


# =============================================================================
# ACCOUNTS
# =============================================================================

@router.get("/accounts")
def list_accounts(ledger: LedgerEngine = Depends(get_ledger)):
    return _documents(ledger.accounts)


@router.put("/accounts/{account_id}")
async def confirm_account_balance(
    account_id: str,
    payload: dict[str, Any] = Body(...),
    ledger: LedgerEngine = Depends(get_ledger),
):
    if "balance" not in payload:
        raise ValidationError("balance is required", field="balance")
    await ledger.confirm_account_balance(account_id, payload["balance"])
    return {"success": True}


# =============================================================================
# CATEGORIES, CREDIT CARDS, TAGS
# =============================================================================

@router.get("/categories")
def list_categories(ledger: LedgerEngine = Depends(get_ledger)):
    return _documents(ledger.categories)


@router.post("/categories")
async def create_category(
    payload: dict[str, Any] = Body(...),
    ledger: LedgerEngine = Depends(get_ledger),
):
    category = await ledger.add_category(payload)
    return {"success": True, "id": category.id}


@router.put("/categories/{category_id}")
async def update_category(
    category_id: str,
    payload: dict[str, Any] = Body(...),
    ledger: LedgerEngine = Depends(get_ledger),
):
    await ledger.update_category(category_id, payload)
    return {"success": True}


@router.delete("/categories/{category_id}")
async def delete_category(category_id: str, ledger: LedgerEngine = Depends(get_ledger)):
    await ledger.delete_category(category_id)
    return {"success": True}


@router.get("/credit-cards")
def list_credit_cards(ledger: LedgerEngine = Depends(get_ledger)):
    return _documents(ledger.credit_cards)


@router.post("/credit-cards")
async def create_credit_card(
    payload: dict[str, Any] = Body(...),
    ledger: LedgerEngine = Depends(get_ledger),
):
    card = await ledger.add_credit_card(payload)
    return {"success": True, "id": card.id}


@router.put("/credit-cards/{card_id}")
async def update_credit_card(
    card_id: str,
    payload: dict[str, Any] = Body(...),
    ledger: LedgerEngine = Depends(get_ledger),
):
    await ledger.update_credit_card(card_id, payload)
    return {"success": True}


@router.delete("/credit-cards/{card_id}")
async def delete_credit_card(card_id: str, ledger: LedgerEngine = Depends(get_ledger)):
    await ledger.delete_credit_card(card_id)
    return {"success": True}


@router.get("/tags")
def list_tags(ledger: LedgerEngine = Depends(get_ledger)):
    return _documents(ledger.tags)


@router.post("/tags")
async def create_tag(
    payload: dict[str, Any] = Body(...),
    ledger: LedgerEngine = Depends(get_ledger),
):
    tag = await ledger.add_tag(payload)
    return {"success": True, "id": tag.id}


@router.put("/tags/{tag_id}")
async def update_tag(
    tag_id: str,
    payload: dict[str, Any] = Body(...),
    ledger: LedgerEngine = Depends(get_ledger),
):
    await ledger.update_tag(tag_id, payload)
    return {"success": True}


@router.delete("/tags/{tag_id}")
async def delete_tag(tag_id: str, ledger: LedgerEngine = Depends(get_ledger)):
    await ledger.delete_tag(tag_id)
    return {"success": True}


# =============================================================================
# SETTINGS
# =============================================================================

@router.get("/settings/notifications")
def get_notification_settings(ledger: LedgerEngine = Depends(get_ledger)):
    return ledger.notification_settings.to_document()


@router.put("/settings/notifications")
async def update_notification_settings(
    payload: dict[str, Any] = Body(...),
    ledger: LedgerEngine = Depends(get_ledger),
):
    settings = await ledger.update_notification_settings(payload)
    return {"success": True, "settings": settings.to_document()}


# =============================================================================
# AGGREGATES
# =============================================================================

@router.get("/dashboard")
def dashboard(
    today: Optional[date] = Query(default=None),
    ledger: LedgerEngine = Depends(get_ledger),
):
    snapshot = ledger.snapshot()
    summary = monthly_summary(snapshot, today)
    return {
        "summary": summary.to_document(),
        "formatted": {
            "totalBalance": format_currency(summary.total_balance),
            "income": format_currency(summary.income),
            "expense": format_currency(summary.expense),
        },
        "cashFlow": _documents(cash_flow_series(snapshot, today)),
        "categoryBreakdown": _documents(category_breakdown(snapshot)),
    }


@router.get("/breakdowns")
def breakdowns(ledger: LedgerEngine = Depends(get_ledger)):
    snapshot = ledger.snapshot()
    return {
        "categories": _documents(category_breakdown(snapshot)),
        "tags": _documents(tag_breakdown(snapshot)),
        "creditCards": _documents(credit_card_breakdown(snapshot)),
    }


@router.get("/reminders")
def reminders(
    today: Optional[date] = Query(default=None),
    ledger: LedgerEngine = Depends(get_ledger),
):
    snapshot = ledger.snapshot()
    return _documents(upcoming_card_dues(snapshot, today=today))


# =============================================================================
# REPORTS
# =============================================================================

@router.get("/reports")
def report(
    start: str = Query(...),
    end: str = Query(...),
    category: Optional[str] = Query(default=None),
    tag: Optional[str] = Query(default=None),
    type: Optional[str] = Query(default=None),
    ledger: LedgerEngine = Depends(get_ledger),
):
    result = filter_transactions(ledger.snapshot(), start, end, category, tag, type)
    return result.to_document()


@router.get("/reports/csv")
async def report_csv(
    start: str = Query(...),
    end: str = Query(...),
    category: Optional[str] = Query(default=None),
    tag: Optional[str] = Query(default=None),
    type: Optional[str] = Query(default=None),
    ledger: LedgerEngine = Depends(get_ledger),
):
    result = filter_transactions(ledger.snapshot(), start, end, category, tag, type)
    await ledger.record_export(result.count, "csv")
    filename = report_filename(result.filter.start_date, result.filter.end_date)
    return Response(
        content=export_csv(result.transactions),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# =============================================================================
# IMPORT / EXPORT
# =============================================================================

@router.get("/export")
async def export(ledger: LedgerEngine = Depends(get_ledger)):
    transactions = ledger.transactions
    await ledger.record_export(len(transactions), "json")
    return Response(
        content=export_transactions(transactions),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.post("/import")
async def import_json(
    request: Request,
    ledger: LedgerEngine = Depends(get_ledger),
    settings: Settings = Depends(get_app_settings),
):
    data = await _read_upload(request, settings)
    transactions = parse_transactions(data)
    imported = await ledger.import_transactions(transactions)
    logger.info("json_import_completed", count=len(imported))
    return {"success": True, "imported": len(imported), "ids": [t.id for t in imported]}


@router.post("/import/csv")
async def import_csv(
    request: Request,
    account_id: str = Query(..., alias="accountId"),
    ledger: LedgerEngine = Depends(get_ledger),
    settings: Settings = Depends(get_app_settings),
):
    data = await _read_upload(request, settings)
    drafts = parse_csv(data, account_id)
    imported = await ledger.import_transactions(drafts)
    logger.info("csv_import_completed", count=len(imported), account_id=account_id)
    return {"success": True, "imported": len(imported), "ids": [t.id for t in imported]}
