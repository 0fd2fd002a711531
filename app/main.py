# app/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from .config import Settings
from .db import BudgetStore, create_db_engine
from .errors import BudgetError, InternalError, ValidationError
from .ingest import normalize_csv
from .llm import InsightGenerator, InsightInstructions, create_client
from .logger import setup_logger
from .schemas import (
    BudgetQuery,
    BudgetResponse,
    DepartmentsResponse,
    ImportResponse,
    InsightRequest,
    InsightResponse,
)
from .table import build_table, render_html

logger = logging.getLogger(__name__)

CORS_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]
CORS_METHODS = ["GET", "POST", "OPTIONS"]


def build_services(app: FastAPI, settings: Settings):
    setup_logger("app", settings.log_file, settings.log_level)
    app.state.settings = settings
    if getattr(app.state, "store", None) is None:
        app.state.store = BudgetStore(create_db_engine(settings.database_url))
    if getattr(app.state, "generator", None) is None:
        app.state.generator = InsightGenerator(create_client(settings), settings.llm_model)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Settings are read once here, never per request
    if getattr(app.state, "store", None) is None or getattr(app.state, "generator", None) is None:
        build_services(app, Settings.from_env())
    logger.info("Budget API started")
    yield


def create_app(settings: Optional[Settings] = None, store: Optional[BudgetStore] = None,
               generator: Optional[InsightGenerator] = None) -> FastAPI:
    """
    Build the API.

    Anything not injected is built from settings; with no settings at all the
    environment is read on startup.
    """
    app = FastAPI(title="Municipal Budget API", lifespan=lifespan)
    app.state.store = store
    app.state.generator = generator
    if settings is not None:
        build_services(app, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )

    @app.exception_handler(BudgetError)
    async def budget_error_handler(request: Request, exc: BudgetError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Rejected request to {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/import-csv", response_model=ImportResponse)
    async def import_csv(file: Optional[UploadFile] = File(None)):
        """Normalize an uploaded CSV and bulk insert its rows."""
        try:
            if file is None:
                raise ValidationError("No CSV file provided")
            raw = await file.read()
            try:
                content = raw.decode("utf-8")
            except UnicodeDecodeError:
                raise ValidationError("CSV file must be UTF-8 text")

            normalized = normalize_csv(content)
            imported = app.state.store.insert_rows(normalized.rows)

            return ImportResponse(
                message=f"Successfully imported {imported} budget records",
                recordsImported=imported,
                skippedRows=normalized.skipped_rows + normalized.rejected_rows,
                warnings=normalized.warning_count,
            )
        except BudgetError:
            raise
        except Exception:
            logger.exception("Error in import-csv")
            raise InternalError()

    @app.post("/get-budget", response_model=BudgetResponse)
    def get_budget(payload: BudgetQuery):
        """Line items for one department, sorted by amount used."""
        try:
            department = (payload.department or "").strip()
            logger.info(f"Fetching budget data for department: {department}, ward: {payload.ward}")
            if not department:
                raise ValidationError("Department is required")

            if payload.ward and payload.ward != "all":
                logger.info("Ward filtering not implemented yet - showing all wards")

            return BudgetResponse(budgetData=app.state.store.fetch_department(department))
        except BudgetError:
            raise
        except Exception:
            logger.exception("Error in get-budget")
            raise InternalError()

    @app.post("/get-ai-insights", response_model=InsightResponse)
    def get_ai_insights(payload: InsightRequest):
        try:
            try:
                instructions = InsightInstructions(payload.instructions or InsightInstructions.SUMMARY.value)
            except ValueError:
                raise ValidationError(f"Unknown instructions: {payload.instructions}")

            insights = app.state.generator.generate(payload.budgetData, payload.department, instructions)
            return InsightResponse(insights=insights)
        except BudgetError:
            raise
        except Exception:
            logger.exception("Error in get-ai-insights")
            raise InternalError()

    @app.get("/departments", response_model=DepartmentsResponse)
    def get_departments():
        """Departments that have budget rows, for the dashboard picker."""
        try:
            return DepartmentsResponse(departments=app.state.store.list_departments())
        except BudgetError:
            raise
        except Exception:
            logger.exception("Error in departments")
            raise InternalError()

    @app.get("/budget-table", response_class=HTMLResponse)
    def get_budget_table(department: str = Query("")):
        try:
            department = department.strip()
            if not department:
                raise ValidationError("Department is required")
            rows = app.state.store.fetch_department(department)
            return HTMLResponse(render_html(build_table(rows, department)))
        except BudgetError:
            raise
        except Exception:
            logger.exception("Error in budget-table")
            raise InternalError()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="127.0.0.1", port=8000, log_level="info")
