import logging
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import Response, StreamingResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from auth import api_key_matches, issue_access_token, verify_access_token
from config import get_settings
from database import get_db
from ledger import LedgerInputError, cents_to_decimal, money_json
from metrics import DASHBOARD_TOP_LIMIT
from models import AuditLog, Category, Transaction
from periods import Period, local_today, month_bounds, resolve_period
from reports import coerce_number, spent_share
from schemas import (
    CategoryIn,
    CategoryUpdate,
    QuestionIn,
    TokenRequest,
    TransactionIn,
    TransactionUpdate,
)
from services import (
    AnalyticsService,
    AuditLogService,
    CategoryService,
    NotFoundError,
    TransactionService,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Budget Tracker")
bearer_scheme = HTTPBearer(auto_error=False)


def current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> int:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="No token, authorization denied")
    try:
        return verify_access_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc


def period_from_request(request: Request, default: str = "all") -> Period:
    try:
        return resolve_period(
            request.query_params.get("period"),
            request.query_params.get("start"),
            request.query_params.get("end"),
            default=default,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def report_range(start: Optional[date], end: Optional[date]) -> tuple[date, date]:
    month_start, _month_end = month_bounds(local_today())
    return start or month_start, end or local_today()


def transaction_json(txn: Transaction) -> dict[str, object]:
    return {
        "id": txn.id,
        "date": txn.date.isoformat(),
        "merchant": txn.merchant,
        "amount": money_json(cents_to_decimal(txn.amount_cents)),
        "category_id": txn.category_id,
        "category": txn.category.name if txn.category else None,
        "description": txn.description,
        "recurrence": txn.recurrence.value,
        "next_occurrence": (
            txn.next_occurrence.isoformat() if txn.next_occurrence else None
        ),
    }


def category_json(category: Category) -> dict[str, object]:
    budget = (
        money_json(cents_to_decimal(category.budget_cents))
        if category.budget_cents is not None
        else None
    )
    return {
        "id": category.id,
        "name": category.name,
        "color": category.color,
        "budget": budget,
    }


def audit_json(entry: AuditLog) -> dict[str, object]:
    return {
        "id": entry.id,
        "timestamp": entry.timestamp.isoformat(),
        "action": entry.action.value,
        "entity_type": entry.entity_type.value,
        "entity_id": entry.entity_id,
        "previous_state": entry.previous_state,
        "new_state": entry.new_state,
    }


def percentage_json(spent, budget) -> Optional[float]:
    percentage = spent_share(spent, budget)
    return float(round(percentage, 2)) if percentage is not None else None


def csv_response(csv_text: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/health")
def health():
    return {"status": "ok", "message": "Server is running"}


@app.post("/api/auth/token")
def create_token(payload: TokenRequest):
    if not api_key_matches(payload.api_key):
        logger.info(f"auth_rejected: user_id={payload.user_id}")
        raise HTTPException(status_code=401, detail="Invalid API key")
    return {
        "access_token": issue_access_token(payload.user_id),
        "token_type": "bearer",
    }


@app.get("/api/transactions")
def list_transactions(
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    period = period_from_request(request)
    items = TransactionService(db, user_id).list(period)
    return [transaction_json(txn) for txn in items]


@app.post("/api/transactions", status_code=201)
def create_transaction(
    payload: TransactionIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        rows = TransactionService(db, user_id).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return [transaction_json(txn) for txn in rows]


@app.delete("/api/transactions")
def reset_transactions(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
):
    deleted = TransactionService(db, user_id).delete_all()
    return {"success": True, "deleted": deleted}


@app.get("/api/transactions/export.csv")
def export_transactions_csv(
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    period = period_from_request(request)
    csv_text = AnalyticsService(db, user_id).transactions_csv(period)
    return csv_response(csv_text, f"transactions_{period.slug}.csv")


@app.get("/api/transactions/{transaction_id}")
def get_transaction(
    transaction_id: str,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        txn = TransactionService(db, user_id).get(transaction_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return transaction_json(txn)


@app.put("/api/transactions/{transaction_id}")
def update_transaction(
    transaction_id: str,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        txn = TransactionService(db, user_id).update(transaction_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return transaction_json(txn)


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: str,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        TransactionService(db, user_id).delete(transaction_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"success": True}


@app.get("/api/categories")
def list_categories(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
):
    return [category_json(c) for c in CategoryService(db, user_id).list_all()]


@app.post("/api/categories", status_code=201)
def create_category(
    payload: CategoryIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        category = CategoryService(db, user_id).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return category_json(category)


@app.post("/api/categories/defaults")
def seed_default_categories(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
):
    created = CategoryService(db, user_id).seed_defaults()
    return [category_json(c) for c in created]


@app.put("/api/categories/{category_id}")
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        category = CategoryService(db, user_id).update(category_id, payload)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return category_json(category)


@app.delete("/api/categories/{category_id}")
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        CategoryService(db, user_id).delete(category_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"success": True}


@app.get("/api/summary")
def summary(
    request: Request,
    limit: int = Query(DASHBOARD_TOP_LIMIT, ge=1, le=50),
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    period = period_from_request(request)
    result = AnalyticsService(db, user_id).summary(period, limit=limit)
    metrics = result.metrics
    return {
        "period": period.slug,
        "income": money_json(metrics.income),
        "expenses": money_json(metrics.expenses),
        "net": money_json(metrics.net),
        "category_totals": {
            name: money_json(amount)
            for name, amount in metrics.category_totals.items()
        },
        "top_categories": [
            {"name": item.name, "amount": money_json(item.amount)}
            for item in result.top_categories
        ],
        "savings_rate": float(round(result.savings_rate, 4)),
        "transaction_count": result.transaction_count,
    }


@app.get("/api/budgets")
def budgets(db: Session = Depends(get_db), user_id: int = Depends(current_user_id)):
    overview = AnalyticsService(db, user_id).budget_overview()
    return {
        "start": overview.period.start.isoformat(),
        "end": overview.period.end.isoformat(),
        "progress": [
            {
                "category_id": row.category_id,
                "name": row.name,
                "color": row.color,
                "spent": money_json(row.spent),
                "budget": money_json(row.budget),
                "remaining": money_json(row.remaining),
                "percentage": float(round(row.percentage, 2)),
                "status": row.status,
            }
            for row in overview.progress
        ],
        "alerts": [
            {
                "id": alert.id,
                "message": alert.message,
                "date": alert.date.isoformat(),
                "resolved": alert.resolved,
            }
            for alert in overview.alerts
        ],
    }


@app.get("/api/insights")
def insights(
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    period = period_from_request(request)
    items = AnalyticsService(db, user_id).insights(period)
    return [
        {
            "id": item.id,
            "title": item.title,
            "message": item.message,
            "type": item.type.value,
            "date": item.date.isoformat(),
        }
        for item in items
    ]


@app.get("/api/reports/monthly")
def monthly_report(
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    start, end = report_range(start, end)
    try:
        report = AnalyticsService(db, user_id).monthly_report(start, end)
    except LedgerInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "period": report.period,
        "start_date": report.start_date.isoformat(),
        "end_date": report.end_date.isoformat(),
        "income": money_json(coerce_number(report.income)),
        "expenses": money_json(coerce_number(report.expenses)),
        "net": money_json(coerce_number(report.net)),
        "categories": {
            name: {
                "budget": money_json(coerce_number(item.budget)),
                "spent": money_json(coerce_number(item.spent)),
                "remaining": money_json(
                    coerce_number(item.budget) - coerce_number(item.spent)
                ),
                "percentage": percentage_json(item.spent, item.budget),
            }
            for name, item in report.categories.items()
        },
        "transactions": [
            {
                "id": txn.id,
                "date": txn.date.isoformat(),
                "merchant": txn.merchant,
                "amount": money_json(txn.amount),
                "category": txn.category,
                "description": txn.description,
            }
            for txn in report.transactions
        ],
    }


@app.get("/api/reports/monthly.csv")
def monthly_report_csv(
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    start, end = report_range(start, end)
    try:
        csv_text = AnalyticsService(db, user_id).monthly_report_csv(start, end)
    except LedgerInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return csv_response(csv_text, f"report_{start}_{end}.csv")


@app.get("/api/advisor/prompt")
def advisor_prompt(
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    period = period_from_request(request)
    prompt = AnalyticsService(db, user_id).advisor_prompt(period)
    return Response(content=prompt, media_type="text/plain")


@app.post("/api/advisor/messages")
def advisor_messages(
    payload: QuestionIn,
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    period = period_from_request(request)
    try:
        messages = AnalyticsService(db, user_id).question_messages(
            period, payload.question
        )
    except LedgerInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"messages": messages}


@app.get("/api/audit-logs")
def audit_logs(
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    return [audit_json(e) for e in AuditLogService(db, user_id).list(limit)]


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
