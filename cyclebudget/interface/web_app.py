"""Mini README: FastAPI-powered dashboard for cyclebudget.

Structure:
    * create_application - application factory wiring routes and templates.
    * ExpenseRequest - JSON payload accepted by the expense API.

The dashboard shows the cycle overview, the contribution split, an expense
form and one card per budget. The same figures are available as JSON under
``/api``. All state lives in a ``BudgetController``; the stored record for
the current cycle is fetched in the background when the application starts.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Form, HTTPException, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, Field

from ..logging_utils import get_logger
from ..state import BudgetController, build_controller

LOGGER = get_logger(__name__)


class ExpenseRequest(BaseModel):
    budget_id: str
    amount: float = Field(..., ge=0)
    contributor_id: str
    description: str = ""


def _format_amount(value: Optional[float]) -> str:
    if value is None:
        return "—"
    if float(value).is_integer():
        return f"{value:,.0f}"
    return f"{value:,.2f}"


def _record_expense(
    controller: BudgetController,
    budget_id: str,
    amount: float,
    contributor_id: str,
    description: str,
) -> Dict[str, Any]:
    """Add an expense, translating domain errors into HTTP errors."""

    try:
        expense = controller.add_expense(budget_id, amount, contributor_id, description)
    except KeyError as error:
        raise HTTPException(status_code=404, detail=error.args[0]) from error
    except ValueError as error:
        raise HTTPException(status_code=400, detail=str(error)) from error
    return {"budgetId": budget_id, "expense": expense.as_dict()}


def create_application(
    controller: Optional[BudgetController] = None,
    *,
    load_on_startup: bool = True,
) -> FastAPI:
    """Create the FastAPI application with routes and dependencies."""

    controller = controller or build_controller()
    settings = controller.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if load_on_startup:
            # Background load; requests are served with defaults until it lands.
            asyncio.get_running_loop().run_in_executor(None, controller.load)
        yield
        controller.shutdown()

    app = FastAPI(title="Cycle Budget Tracker", version="0.1.0", lifespan=lifespan)
    templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
    templates.env.filters["amount"] = _format_amount
    app.state.controller = controller

    @app.get("/", response_class=HTMLResponse)
    def dashboard(request: Request) -> HTMLResponse:
        """Render the overview, expense form and budget cards."""

        controller.ensure_current_cycle()
        state = controller.state
        metrics = controller.metrics()
        LOGGER.debug(
            "Rendering dashboard for cycle %s -> spent: %.2f remaining: %.2f",
            state.cycle.key,
            metrics.total_spent,
            metrics.total_remaining,
        )
        return templates.TemplateResponse(
            request,
            "dashboard.html",
            {
                "cycle": state.cycle,
                "loaded": state.loaded,
                "budgets": state.budgets,
                "contributors": state.contributors,
                "metrics": metrics,
                "currency": settings.currency_symbol,
            },
        )

    @app.post("/expenses")
    def submit_expense(
        budget_id: str = Form(...),
        contributor_id: str = Form(...),
        amount: Optional[float] = Form(None),
        description: str = Form(""),
    ) -> RedirectResponse:
        """Handle the dashboard form; an empty amount is ignored."""

        controller.ensure_current_cycle()
        if amount is not None:
            _record_expense(controller, budget_id, amount, contributor_id, description)
        return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)

    @app.get("/api/overview")
    def overview() -> JSONResponse:
        """Return cycle boundaries, persistence flags and derived metrics."""

        controller.ensure_current_cycle()
        state = controller.state
        return JSONResponse(
            {
                "cycle": state.cycle.key,
                "loaded": state.loaded,
                "persistenceArmed": state.persistence_armed,
                "savePending": controller.save_pending,
                "overview": controller.metrics().as_dict(),
            }
        )

    @app.get("/api/budgets")
    def list_budgets() -> JSONResponse:
        controller.ensure_current_cycle()
        state = controller.state
        return JSONResponse(
            {
                "cycle": state.cycle.key,
                "budget": [budget.as_dict() for budget in state.budgets],
                "contributors": [contributor.as_dict() for contributor in state.contributors],
            }
        )

    @app.post("/api/expenses", status_code=status.HTTP_201_CREATED)
    def create_expense(payload: ExpenseRequest) -> Dict[str, Any]:
        """Record an expense from a JSON payload and return the new overview."""

        controller.ensure_current_cycle()
        result = _record_expense(
            controller,
            payload.budget_id,
            payload.amount,
            payload.contributor_id,
            payload.description,
        )
        LOGGER.info("Expense created via API in budget %s", payload.budget_id)
        result["overview"] = controller.metrics().as_dict()
        return result

    return app
