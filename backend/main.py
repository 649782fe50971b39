import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.core.error_handlers import register_exception_handlers
from backend.core.logging_config import configure_logging
from backend.database import SessionLocal, ensure_auth_schema
from backend.routes import auth_routes
from backend.services.reset_token_store import purge_stale_tokens

configure_logging()
config.validate_runtime_config()

app = FastAPI(title='Academic Records API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

register_exception_handlers(app)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        ensure_auth_schema()
        db = SessionLocal()
        try:
            purge_stale_tokens(db)
        finally:
            db.close()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Academic Records API Running'}


app.include_router(auth_routes.router, prefix='/auth')
