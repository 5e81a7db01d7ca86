from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse
from routers.product import router as product_router
from routers.history import router as history_router
from routers.chat import router as chat_router
import uvicorn
from db.database import init_db
from env import PORT, check_required_env, tracing_summary
from logger_manager import log_info
from services.enrichment_service import EnrichmentOrchestrator
from services.llm_client import get_completion_client


app = FastAPI(title="SafeBite API")


# Store the completion client and the enrichment orchestrator as state variables in the app
@app.on_event("startup")
async def startup_event():
    check_required_env()
    init_db()
    app.state.completion_client = get_completion_client()
    app.state.enrichment = EnrichmentOrchestrator(app.state.completion_client)
    log_info(tracing_summary())
    log_info("SafeBite API started")


@app.on_event("shutdown")
async def shutdown_event():
    enrichment = getattr(app.state, "enrichment", None)
    if enrichment is not None:
        enrichment.discard_all()


@app.get("/")
def read_root():
    return RedirectResponse("/docs")


# log every request with its response status
@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    log_info(f"Request: {request.method} {request.url} -> {response.status_code}")
    return response


app.include_router(product_router, prefix="/api/product")
app.include_router(history_router, prefix="/api/history")
app.include_router(chat_router, prefix="/api/chat")

# To run the FastAPI app, use the command: uvicorn main:app --reload
if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=PORT)
