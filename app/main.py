import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.responses import PlainTextResponse

from app.auth import get_optional_client
from app.config import settings
from app.db import SessionLocal, init_db
from app.routers import auth, notifications, requisitions, users
from app.security.headers import install_security_headers
from app.security.sessions import install_device_session_middleware
from app.services.client_registry import ClientRegistry
from app.services.provider_factory import get_remote_api

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)


def create_app(*, remote=None, session_factory=None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if session_factory is None:
            init_db()
        yield
        app.state.clients.shutdown()

    app = FastAPI(title='Requisition Sync Client', lifespan=lifespan)
    app.state.remote = remote if remote is not None else get_remote_api()
    app.state.clients = ClientRegistry(
        remote=app.state.remote,
        session_factory=session_factory or SessionLocal,
    )

    install_device_session_middleware(app)
    install_security_headers(app)

    app.include_router(auth.router)
    app.include_router(requisitions.router)
    app.include_router(notifications.router)
    app.include_router(users.router)

    @app.get('/')
    async def root(client=Depends(get_optional_client)):
        if client is None or client.user is None:
            return {'view': 'login'}
        return {'view': 'list', 'user': client.user.to_payload()}

    @app.get('/robots.txt', response_class=PlainTextResponse)
    def robots_txt() -> str:
        return 'User-agent: *\nDisallow: /\n'

    return app


app = create_app()
