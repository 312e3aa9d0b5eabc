import asyncio
import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eprojects.auth.routes import router as auth_router
from eprojects.auth.security import SessionExpiredError, clear_session_cookie
from eprojects.database import init_db
from eprojects.routes.admin import router as admin_router
from eprojects.routes.chat import router as chat_router
from eprojects.routes.courses import router as courses_router
from eprojects.routes.notifications import router as notifications_router
from eprojects.routes.plans import router as plans_router
from eprojects.routes.promocodes import router as promocodes_router
from eprojects.routes.tools import router as tools_router
from eprojects.services.housekeeping import expiration_loop

ENV = os.getenv("ENV", "development")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
EXPIRATION_CHECK_INTERVAL = float(os.getenv("EXPIRATION_CHECK_INTERVAL_SECONDS", "3600"))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("eprojects.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("E-Projects iniciando [%s]", ENV)
    init_db()

    task = None
    if EXPIRATION_CHECK_INTERVAL > 0:
        task = asyncio.create_task(expiration_loop(EXPIRATION_CHECK_INTERVAL))
        logger.info("Verificação de planos expirados a cada %ss", EXPIRATION_CHECK_INTERVAL)

    yield

    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    logger.info("E-Projects encerrando.")


app = FastAPI(
    title="E-Projects",
    docs_url="/docs" if ENV != "production" else None,
    redoc_url="/redoc" if ENV != "production" else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SessionExpiredError)
async def session_expired_handler(request: Request, exc: SessionExpiredError):
    # O cliente usa o flag sessionExpired para ir ao login em vez de mostrar erro
    response = JSONResponse(status_code=401, content={"message": exc.message, "sessionExpired": True})
    clear_session_cookie(response)
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Erro não tratado em %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Erro interno do servidor"})


app.include_router(auth_router)
app.include_router(tools_router)
app.include_router(courses_router)
app.include_router(promocodes_router)
app.include_router(notifications_router)
app.include_router(chat_router)
app.include_router(admin_router)
app.include_router(plans_router)


@app.get("/health", tags=["Sistema"])
async def health():
    return {"status": "ok", "app": "E-Projects", "env": ENV}
