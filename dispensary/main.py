from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from .compliance.dosage import InvalidTimezoneError
from .routes.compliance import router as compliance_router
from .routes.orders import router as orders_router
from .utils.logging import logger

app = FastAPI(title="Dispensary Orders + Compliance Engine",
              description="Checkout gate for age and daily THC rules",
    version="0.1.0",
    docs_url="/docs",          # Swagger UI
    redoc_url="/redoc",        # ReDoc
    openapi_url="/openapi.json")

app.include_router(compliance_router)
app.include_router(orders_router)

def _unavailable() -> JSONResponse:
    return JSONResponse(status_code=503, content={"error": "service_unavailable",
                                                  "message": "Please try again."})

@app.exception_handler(SQLAlchemyError)
async def database_error(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return _unavailable()

@app.exception_handler(InvalidTimezoneError)
async def timezone_config_error(request: Request, exc: InvalidTimezoneError):
    logger.error("Bad timezone %r configured, %s %s", exc.tz_name, request.method, request.url.path)
    return _unavailable()

@app.get("/health")
def health():
    return {"ok": True}
