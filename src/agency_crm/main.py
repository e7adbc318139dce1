import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from src.agency_crm import models
from src.agency_crm.api.api import api_router
from src.agency_crm.core.database import engine

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

EXPECTED_TABLES = [
    "agencies",
    "profiles",
    "agency_members",
    "user_invitations",
    "campaigns",
    "leads",
    "import_jobs",
    "import_job_items",
    "audit_log",
]


def init_db():
    """Create missing tables and log which of the expected ones exist."""
    logger.info("Initializing database tables...")
    try:
        existing_tables = inspect(engine).get_table_names()

        models.Base.metadata.create_all(bind=engine)

        final_tables = inspect(engine).get_table_names()
        for table in EXPECTED_TABLES:
            if table in final_tables:
                if table not in existing_tables:
                    logger.info(f"✓ Table created: {table}")
                else:
                    logger.info(f"✓ Table exists: {table}")
            else:
                logger.warning(f"✗ Table missing: {table}")

        logger.info("Database initialization completed successfully")
    except Exception as e:
        logger.error(f"Error initializing database: {str(e)}")
        raise


init_db()

app = FastAPI(title="Agency CRM API")

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Custom validation error handler to log detailed errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error on {request.method} {request.url.path}")

    error_messages = []
    for error in exc.errors():
        logger.error(
            f"Field: {error.get('loc')}, Error: {error.get('msg')}, Type: {error.get('type')}"
        )
        field = " -> ".join(str(loc) for loc in error.get("loc", []))
        error_messages.append(f"{field}: {error.get('msg', 'Validation error')}")

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation Error",
            "message": "; ".join(error_messages),
            "details": error_messages,
        },
    )


app.include_router(api_router)
