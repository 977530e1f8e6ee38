import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from config import get_settings
from csrf import CSRF_HEADER, generate_csrf_token, validate_csrf_token
from csv_utils import export_budget_report, export_report_transactions
from database import get_db
from models import Transaction
from scheduler import SchedulerManager
from schemas import (
    LedgerFilters,
    ReconciliationFinishIn,
    ReconciliationStartIn,
    ReportParams,
)
from services import (
    AccountService,
    BudgetReportService,
    LedgerService,
    OrganizationService,
    ReconciliationService,
    RecurringTemplateService,
    ReportService,
)


settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Nonprofit Ledger")
scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    if settings.scheduler_enabled:
        scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def _http_error(exc: ValueError) -> HTTPException:
    status_code = 404 if "not found" in str(exc).lower() else 400
    return HTTPException(status_code=status_code, detail=str(exc))


def _require_csrf(token: Optional[str], organization_id: int) -> None:
    if not validate_csrf_token(token or "", organization_id):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")


def _csv_response(csv_text: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _transaction_payload(txn: Transaction) -> dict[str, object]:
    return {
        "id": txn.id,
        "transaction_date": txn.transaction_date.isoformat(),
        "transaction_type": txn.transaction_type.value,
        "amount": txn.amount,
        "status": txn.status.value,
        "description": txn.description,
        "vendor": txn.vendor,
        "check_number": txn.check_number,
    }


def _report_params(
    db: Session,
    organization_id: int,
    preset: Optional[str],
    start: Optional[str],
    end: Optional[str],
    account_id: Optional[int],
    category_id: Optional[int],
    status: Optional[str],
) -> ReportParams:
    try:
        period = OrganizationService(db).period(organization_id, preset, start, end)
        return ReportParams(
            start_date=period.start,
            end_date=period.end,
            account_id=account_id,
            category_id=category_id,
            statuses=status,
        )
    except ValueError as exc:
        raise _http_error(exc) from exc


@app.get("/api/organizations/{organization_id}/csrf-token")
def csrf_token(organization_id: int, db: Session = Depends(get_db)):
    try:
        organization = OrganizationService(db).get(organization_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"csrf_token": generate_csrf_token(organization.id), "header": CSRF_HEADER}


@app.get("/api/organizations/{organization_id}/period")
def organization_period(
    organization_id: int,
    preset: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    db: Session = Depends(get_db),
):
    try:
        period = OrganizationService(db).period(organization_id, preset, start, end)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return jsonable_encoder(period)


@app.get("/api/organizations/{organization_id}/dashboard")
def organization_dashboard(organization_id: int, db: Session = Depends(get_db)):
    try:
        data = AccountService(db).dashboard(organization_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return jsonable_encoder(data)


@app.get("/api/organizations/{organization_id}/report")
def organization_report(
    organization_id: int,
    preset: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    account_id: Optional[int] = None,
    category_id: Optional[int] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    params = _report_params(
        db, organization_id, preset, start, end, account_id, category_id, status
    )
    try:
        report = ReportService(db).gather(organization_id, params)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return jsonable_encoder(report)


@app.get("/api/organizations/{organization_id}/report.csv")
def organization_report_csv(
    organization_id: int,
    preset: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    account_id: Optional[int] = None,
    category_id: Optional[int] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    params = _report_params(
        db, organization_id, preset, start, end, account_id, category_id, status
    )
    try:
        report = ReportService(db).gather(organization_id, params)
    except ValueError as exc:
        raise _http_error(exc) from exc
    filename = f"report_{params.start_date}_{params.end_date}.csv"
    return _csv_response(export_report_transactions(report), filename)


@app.get("/api/budgets/{budget_id}/report")
def budget_report(budget_id: int, db: Session = Depends(get_db)):
    try:
        report = BudgetReportService(db).build(budget_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return jsonable_encoder(report)


@app.get("/api/budgets/{budget_id}/report.csv")
def budget_report_csv(budget_id: int, db: Session = Depends(get_db)):
    try:
        report = BudgetReportService(db).build(budget_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _csv_response(export_budget_report(report), f"budget_{budget_id}.csv")


@app.get("/api/accounts/{account_id}/ledger")
def account_ledger(
    account_id: int,
    page: int = 1,
    limit: Optional[int] = None,
    status: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    db: Session = Depends(get_db),
):
    page = max(page, 1)
    limit = min(max(limit or settings.page_size, 1), 200)
    try:
        filters = LedgerFilters(statuses=status, start_date=start, end_date=end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    service = LedgerService(db)
    try:
        ledger = service.page(account_id, filters, page=page, limit=limit)
    except ValueError as exc:
        raise _http_error(exc) from exc
    total = service.count(account_id, filters)

    return jsonable_encoder(
        {
            "items": [
                {
                    "id": txn.id,
                    "transaction_date": txn.transaction_date,
                    "transaction_type": txn.transaction_type,
                    "amount": txn.amount,
                    "status": txn.status,
                    "running_balance": ledger.running_balances[txn.id],
                }
                for txn in ledger.transactions
            ],
            "starting_balance": ledger.starting_balance,
            "ending_balance": ledger.ending_balance,
            "page": page,
            "limit": limit,
            "total": total,
            "has_more": page * limit < total,
        }
    )


@app.post("/api/accounts/{account_id}/reconciliations", status_code=201)
def start_reconciliation(
    account_id: int,
    data: ReconciliationStartIn,
    x_csrf_token: Optional[str] = Header(default=None, alias=CSRF_HEADER),
    db: Session = Depends(get_db),
):
    try:
        account = AccountService(db).get(account_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    _require_csrf(x_csrf_token, account.organization_id)
    try:
        reconciliation = ReconciliationService(db).start(account.id, data)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return _reconciliation_payload(db, reconciliation.id, [])


def _reconciliation_payload(
    db: Session, session_id: int, checked: list[int]
) -> dict[str, object]:
    service = ReconciliationService(db)
    reconciliation = service.get(session_id)
    progress = service.progress(session_id, checked)
    return jsonable_encoder(
        {
            "id": reconciliation.id,
            "account_id": reconciliation.account_id,
            "statement_date": reconciliation.statement_date,
            "status": reconciliation.status,
            "completed_at": reconciliation.completed_at,
            "transaction_count": reconciliation.transaction_count,
            "progress": progress,
            "candidates": [
                _transaction_payload(txn) for txn in service.candidates(session_id)
            ],
        }
    )


@app.get("/api/reconciliations/{session_id}")
def get_reconciliation(
    session_id: int, checked: Optional[str] = None, db: Session = Depends(get_db)
):
    try:
        checked_ids = [int(part) for part in (checked or "").split(",") if part.strip()]
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid transaction ids") from exc
    try:
        return _reconciliation_payload(db, session_id, checked_ids)
    except ValueError as exc:
        raise _http_error(exc) from exc


def _reconciliation_org(db: Session, session_id: int) -> int:
    try:
        reconciliation = ReconciliationService(db).get(session_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return reconciliation.account.organization_id


@app.post("/api/reconciliations/{session_id}/finish")
def finish_reconciliation(
    session_id: int,
    data: ReconciliationFinishIn,
    x_csrf_token: Optional[str] = Header(default=None, alias=CSRF_HEADER),
    db: Session = Depends(get_db),
):
    _require_csrf(x_csrf_token, _reconciliation_org(db, session_id))
    try:
        reconciliation = ReconciliationService(db).finish(
            session_id, data.transaction_ids
        )
    except ValueError as exc:
        raise _http_error(exc) from exc
    return jsonable_encoder(
        {
            "id": reconciliation.id,
            "status": reconciliation.status,
            "completed_at": reconciliation.completed_at,
            "transaction_count": reconciliation.transaction_count,
        }
    )


@app.post("/api/reconciliations/{session_id}/cancel")
def cancel_reconciliation(
    session_id: int,
    x_csrf_token: Optional[str] = Header(default=None, alias=CSRF_HEADER),
    db: Session = Depends(get_db),
):
    _require_csrf(x_csrf_token, _reconciliation_org(db, session_id))
    try:
        reconciliation = ReconciliationService(db).cancel(session_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"id": reconciliation.id, "status": reconciliation.status.value}


@app.post("/api/recurring-templates/{template_id}/generate")
def generate_recurring(
    template_id: int,
    x_csrf_token: Optional[str] = Header(default=None, alias=CSRF_HEADER),
    db: Session = Depends(get_db),
):
    service = RecurringTemplateService(db)
    try:
        template = service.get(template_id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    _require_csrf(x_csrf_token, template.organization_id)
    try:
        txn = service.generate(template.id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return jsonable_encoder(
        {
            "transaction": _transaction_payload(txn) if txn else None,
            "next_occurrence_date": template.next_occurrence_date,
            "is_active": template.is_active,
        }
    )
