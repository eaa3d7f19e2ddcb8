import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import async_sessionmaker

from revalidator.api.routes import metrics, ping, validations
from revalidator.core.config import Settings, get_settings
from revalidator.core.logging import configure_logging, init_tracer, shutdown_tracer
from revalidator.metrics import metrics_registry
from revalidator.services.database import DatabaseHealthCheck, create_engine
from revalidator.validation.merge import ScoringPolicy
from revalidator.validation.repository import ValidationHistoryRepository
from revalidator.validation.service import RevalidationService
from revalidator.validation.validator import ChatCompletionFieldValidator

logger = logging.getLogger(__name__)


def build_service(
    settings: Settings,
    repository: ValidationHistoryRepository,
    validator: ChatCompletionFieldValidator,
) -> RevalidationService:
    return RevalidationService(
        repository,
        validator,
        fields=settings.validated_fields,
        scoring=ScoringPolicy(rounding=settings.score_rounding, min_valid_score=settings.min_valid_score),
        max_write_attempts=settings.max_write_attempts,
        concurrency=settings.batch_concurrency,
        metrics=metrics_registry,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    app.state.logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.metrics = metrics_registry

    engine = create_engine(settings.database_dsn)
    validator = ChatCompletionFieldValidator(
        base_url=settings.llm_base_url,
        model=settings.llm_model,
        api_key=settings.llm_api_key,
        timeout=settings.llm_timeout_seconds,
    )
    app.state.health_check = DatabaseHealthCheck(engine)
    app.state.revalidation_service = None
    try:
        session_factory = async_sessionmaker(engine, expire_on_commit=False)
        repository = ValidationHistoryRepository(session_factory, engine=engine)
        await repository.ensure_schema()
        app.state.revalidation_service = build_service(settings, repository, validator)
    except Exception:
        logger.exception("Revalidation service could not be initialised; requests will return 503")
    try:
        yield
    finally:
        service = app.state.revalidation_service
        if service is not None:
            await service.wait_for_inflight()
        await validator.aclose()
        await engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(validations.router)
    app.include_router(metrics.router)
    return app


app = create_app()
