from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from routers.documents import router as documents_router
from routers.analysis import router as analysis_router
from utils.logging_config import init_logging, install_request_logging
from utils.exception_handlers import install_exception_handlers

app = FastAPI(
    title="Legal Document Assistant API",
    description="Upload legal documents, extract their text, and get AI summaries, answers, clauses and templates.",
    version="1.0.0"
)

init_logging()
install_request_logging(app)
install_exception_handlers(app)

app.include_router(documents_router)
app.include_router(analysis_router)

# CORS settings (adjust origins as needed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def read_root():
    return {"message": "Welcome to the Legal Document Assistant API"}
