import logging
import uvicorn
from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import config
from database import create_tables, delete_tables
from router.auth import router as auth_router
from router.user import router as user_router
from router.event import router as event_router
from router.application import router as application_router
from router.notification import router as notification_router
from init_test_data import init_all_test_data




logging.basicConfig(level=config.LOG_LEVEL, format="[%(asctime)s] %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if config.RESET_DATABASE:
        await delete_tables()
        logger.info("База очищена")
    await create_tables()
    logger.info("База готова к работе")
    if config.SEED_DEMO_DATA:
        await init_all_test_data()
    yield
    logger.info("Выключение")


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="Event Participation API",
        version="1.0.0",
        description="Events with capacity-bounded participation, applications and notifications",
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "Bearer": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT"
        }
    }

    # Анонимно доступны только вход, регистрация и просмотр событий
    public_paths = {
        ("/auth/register", "post"),
        ("/auth/login", "post"),
        ("/auth/refresh", "post"),
        ("/auth/logout", "post"),
        ("/events", "get"),
        ("/events/{event_id}", "get"),
    }

    for path, methods in openapi_schema["paths"].items():
        for method, operation in methods.items():
            if (path, method) not in public_paths:
                operation["security"] = [{"Bearer": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app = FastAPI(lifespan=lifespan)
app.openapi = custom_openapi

app.include_router(auth_router)
app.include_router(user_router)
app.include_router(event_router)
app.include_router(application_router)
app.include_router(notification_router)


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)



if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        reload=True,
        port=3001,
        host="0.0.0.0"
    )
