from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from wildlife_finder.config import parse_csv_env
from wildlife_finder.routers import chat


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    chat.engine.close()


app = FastAPI(title="Wildlife Finder API", version="0.1.0", lifespan=lifespan)

cors_origins = parse_csv_env("CORS_ORIGINS", "*")
allow_any_origin = len(cors_origins) == 1 and cors_origins[0] == "*"

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    # Browsers reject wildcard CORS with credentials enabled.
    allow_credentials=not allow_any_origin,
    allow_methods=["*"],
    allow_headers=["*"],
)

trusted_hosts = parse_csv_env("TRUSTED_HOSTS", "*")
if not (len(trusted_hosts) == 1 and trusted_hosts[0] == "*"):
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=trusted_hosts)

app.include_router(chat.router)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/ready")
def ready():
    llm_configured = bool(chat.engine.llm_available)
    return {
        "status": "ready",
        "llm_configured": llm_configured,
        "llm_mode": "openai" if llm_configured else "heuristic",
        "session_backend": chat.engine.session_store.backend,
    }
