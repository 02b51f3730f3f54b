"""FastAPI entrypoint for the quotedesk service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from uuid import uuid4

import httpx
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis, from_url as redis_from_url
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from .config import Settings, get_settings
from .errors import InvalidToken, QuoteDeskError, Unauthorized
from .logging_config import configure_logging
from .schemas import (
    ApiResponse,
    BookingCreate,
    BookingOut,
    BookingStatusUpdate,
    ConsumeTokenRequest,
    ContentUpdate,
    EmailCheck,
    PackageBookingCreate,
    PackageCreate,
    PackageOut,
    PackageUpdate,
    PaymentRecord,
    QuoteOut,
    QuoteRequest,
    QuoteStatusUpdate,
    SettingUpdate,
    SigninRequest,
    SignupRequest,
)
from .security import Principal, decode_access_token
from .services.account_linker import AccountLinker
from .services.accounts import AccountService
from .services.bookings import BookingService
from .services.content_cache import ContentCache
from .services.email_client import EmailClient
from .services.notification_dispatcher import NotificationDispatcher
from .services.packages import PackageStore
from .services.quote_store import QuoteStore
from .services.token_issuer import TokenIssuer

logger = logging.getLogger(__name__)


async def init_db(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def connect_redis(url: str | None) -> Redis | None:
    if not url:
        return None
    try:
        client = redis_from_url(url, decode_responses=True)
        await client.ping()
        return client
    except RedisError as exc:
        logger.warning("Redis unavailable (%s); content cache disabled", exc)
        return None


def create_app(settings: Settings | None = None, email_transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level, settings.log_json)
        engine = create_async_engine(settings.database_url, echo=False, future=True)
        session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
        await init_db(engine)
        redis_client = await connect_redis(settings.redis_url)

        email_client = EmailClient(
            settings,
            httpx.AsyncClient(
                base_url=settings.email_api_url,
                timeout=settings.request_timeout_seconds,
                transport=email_transport,
            ),
        )
        quote_store = QuoteStore(session_factory, settings)
        token_issuer = TokenIssuer(session_factory, ttl=timedelta(days=settings.quote_token_ttl_days))
        account_linker = AccountLinker(token_issuer)

        app.state.settings = settings
        app.state.engine = engine
        app.state.session_factory = session_factory
        app.state.redis = redis_client
        app.state.email_client = email_client
        app.state.quote_store = quote_store
        app.state.token_issuer = token_issuer
        app.state.account_linker = account_linker
        app.state.dispatcher = NotificationDispatcher(settings, quote_store, token_issuer, email_client)
        app.state.accounts = AccountService(session_factory, settings, account_linker)
        package_store = PackageStore(session_factory, settings)
        app.state.packages = package_store
        app.state.bookings = BookingService(session_factory, settings, quote_store, package_store)
        app.state.content = ContentCache(session_factory, settings, redis_client)
        logger.info("%s %s started (%s)", settings.app_name, settings.version, settings.environment)

        yield

        await email_client.close()
        if redis_client:
            await redis_client.aclose()
        await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)
    _register_routes(app)
    return app


def _response(data: dict | None = None, trace_id: str | None = None) -> ApiResponse:
    return ApiResponse(success=True, data=data, trace_id=trace_id or uuid4().hex)


def _error_response(status_code: int, error: dict) -> ORJSONResponse:
    body = ApiResponse(success=False, error=error, trace_id=uuid4().hex)
    return ORJSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(QuoteDeskError)
    async def domain_error(request: Request, exc: QuoteDeskError) -> ORJSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(exc.status_code, exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError) -> ORJSONResponse:
        details = {".".join(str(part) for part in err["loc"]): err["msg"] for err in exc.errors()}
        return _error_response(400, {"code": "VALIDATION_ERROR", "message": "Invalid request", "details": details})


bearer = HTTPBearer(auto_error=False)


def get_current_principal(
    request: Request, credentials: HTTPAuthorizationCredentials | None = Depends(bearer)
) -> Principal:
    if credentials is None:
        raise Unauthorized("Missing bearer token")
    return decode_access_token(credentials.credentials, request.app.state.settings)


def get_quote_store(request: Request) -> QuoteStore:
    return request.app.state.quote_store


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_account_linker(request: Request) -> AccountLinker:
    return request.app.state.account_linker


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_accounts(request: Request) -> AccountService:
    return request.app.state.accounts


def get_bookings(request: Request) -> BookingService:
    return request.app.state.bookings


def get_packages(request: Request) -> PackageStore:
    return request.app.state.packages


def get_content(request: Request) -> ContentCache:
    return request.app.state.content


def _quote(quote) -> dict:
    return QuoteOut.model_validate(quote).model_dump(mode="json")


def _booking(booking) -> dict:
    return BookingOut.model_validate(booking).model_dump(mode="json")


def _package(package) -> dict:
    return PackageOut.model_validate(package).model_dump(mode="json")


def _register_routes(app: FastAPI) -> None:
    @app.get("/health", response_model=ApiResponse)
    async def healthcheck() -> ApiResponse:
        return _response({"status": "healthy", "service": "quotedesk"})

    # Quotes

    @app.post("/quotes", response_model=ApiResponse, status_code=201)
    async def create_quote(payload: QuoteRequest, store: QuoteStore = Depends(get_quote_store)):
        quote = await store.create(payload)
        return _response({"quoteId": quote.id, "message": "Quote request submitted successfully"})

    @app.get("/quotes/mine", response_model=ApiResponse)
    async def my_quotes(
        principal: Principal = Depends(get_current_principal), store: QuoteStore = Depends(get_quote_store)
    ):
        quotes = await store.list_for_user(principal.subject)
        return _response({"quotes": [_quote(q) for q in quotes], "totalResults": len(quotes)})

    @app.get("/admin/quotes", response_model=ApiResponse)
    async def list_quotes(
        status: str | None = None,
        principal: Principal = Depends(get_current_principal),
        store: QuoteStore = Depends(get_quote_store),
    ):
        quotes = await store.list_quotes(principal, status=status)
        return _response({"quotes": [_quote(q) for q in quotes], "totalResults": len(quotes)})

    @app.get("/admin/quotes/{quote_id}", response_model=ApiResponse)
    async def get_quote(
        quote_id: str,
        principal: Principal = Depends(get_current_principal),
        store: QuoteStore = Depends(get_quote_store),
    ):
        return _response(_quote(await store.get_for_operator(quote_id, principal)))

    @app.patch("/admin/quotes/{quote_id}", response_model=ApiResponse)
    async def update_quote_status(
        quote_id: str,
        payload: QuoteStatusUpdate,
        principal: Principal = Depends(get_current_principal),
        store: QuoteStore = Depends(get_quote_store),
    ):
        quote = await store.update_status(
            quote_id,
            payload.status,
            principal,
            quoted_price=payload.quoted_price,
            quoted_currency=payload.quoted_currency,
            admin_notes=payload.admin_notes,
        )
        return _response(_quote(quote))

    @app.post("/admin/quotes/{quote_id}/notify-approved", response_model=ApiResponse)
    async def notify_approved(
        quote_id: str,
        principal: Principal = Depends(get_current_principal),
        dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    ):
        result = await dispatcher.notify_approved(quote_id, principal)
        return _response(result.model_dump(mode="json"))

    # Quote tokens

    @app.get("/quote-tokens/validate", response_model=ApiResponse)
    async def validate_token(token: str = Query(min_length=1), linker: AccountLinker = Depends(get_account_linker)):
        try:
            validation = await linker.validate_token_for_display(token)
        except InvalidToken as exc:
            raise InvalidToken(status_code=404) from exc
        return _response(validation.model_dump(mode="json"))

    @app.post("/quote-tokens/consume", response_model=ApiResponse)
    async def consume_token(
        payload: ConsumeTokenRequest,
        principal: Principal = Depends(get_current_principal),
        issuer: TokenIssuer = Depends(get_token_issuer),
    ):
        quote_id = await issuer.consume(payload.token, principal.subject)
        return _response({"quoteId": quote_id, "message": "Quote successfully attached to your account"})

    # Accounts

    @app.post("/auth/signup", response_model=ApiResponse, status_code=201)
    async def signup(payload: SignupRequest, accounts: AccountService = Depends(get_accounts)):
        return _response((await accounts.signup(payload)).model_dump())

    @app.post("/auth/signin", response_model=ApiResponse)
    async def signin(payload: SigninRequest, accounts: AccountService = Depends(get_accounts)):
        return _response((await accounts.signin(payload)).model_dump())

    @app.post("/auth/check-email", response_model=ApiResponse)
    async def check_email(payload: EmailCheck, accounts: AccountService = Depends(get_accounts)):
        return _response({"exists": await accounts.email_exists(str(payload.email))})

    # Packages

    @app.get("/packages", response_model=ApiResponse)
    async def list_packages(destination: str | None = None, packages: PackageStore = Depends(get_packages)):
        rows = await packages.list_active(destination)
        return _response({"packages": [_package(p) for p in rows], "totalResults": len(rows)})

    @app.get("/packages/{package_id}", response_model=ApiResponse)
    async def get_package(package_id: str, packages: PackageStore = Depends(get_packages)):
        return _response(_package(await packages.get_active(package_id)))

    @app.post("/packages/{package_id}/bookings", response_model=ApiResponse, status_code=201)
    async def book_package(
        package_id: str,
        payload: PackageBookingCreate,
        principal: Principal = Depends(get_current_principal),
        bookings: BookingService = Depends(get_bookings),
    ):
        return _response(_booking(await bookings.create_from_package(package_id, payload, principal)))

    @app.get("/admin/packages", response_model=ApiResponse)
    async def admin_list_packages(
        principal: Principal = Depends(get_current_principal), packages: PackageStore = Depends(get_packages)
    ):
        rows = await packages.list_all(principal)
        return _response({"packages": [_package(p) for p in rows], "totalResults": len(rows)})

    @app.post("/admin/packages", response_model=ApiResponse, status_code=201)
    async def create_package(
        payload: PackageCreate,
        principal: Principal = Depends(get_current_principal),
        packages: PackageStore = Depends(get_packages),
    ):
        return _response(_package(await packages.create(payload, principal)))

    @app.get("/admin/packages/{package_id}", response_model=ApiResponse)
    async def admin_get_package(
        package_id: str,
        principal: Principal = Depends(get_current_principal),
        packages: PackageStore = Depends(get_packages),
    ):
        return _response(_package(await packages.get(package_id, principal)))

    @app.patch("/admin/packages/{package_id}", response_model=ApiResponse)
    async def update_package(
        package_id: str,
        payload: PackageUpdate,
        principal: Principal = Depends(get_current_principal),
        packages: PackageStore = Depends(get_packages),
    ):
        return _response(_package(await packages.update(package_id, payload, principal)))

    @app.delete("/admin/packages/{package_id}", response_model=ApiResponse)
    async def delete_package(
        package_id: str,
        principal: Principal = Depends(get_current_principal),
        packages: PackageStore = Depends(get_packages),
    ):
        await packages.delete(package_id, principal)
        return _response({"packageId": package_id, "deleted": True})

    # Bookings

    @app.post("/bookings", response_model=ApiResponse, status_code=201)
    async def create_booking(
        payload: BookingCreate,
        principal: Principal = Depends(get_current_principal),
        bookings: BookingService = Depends(get_bookings),
    ):
        return _response(_booking(await bookings.create_from_quote(payload, principal)))

    @app.get("/bookings/mine", response_model=ApiResponse)
    async def my_bookings(
        principal: Principal = Depends(get_current_principal), bookings: BookingService = Depends(get_bookings)
    ):
        rows = await bookings.list_for_user(principal.subject)
        return _response({"bookings": [_booking(b) for b in rows], "totalResults": len(rows)})

    @app.get("/bookings/{booking_id}", response_model=ApiResponse)
    async def get_my_booking(
        booking_id: str,
        principal: Principal = Depends(get_current_principal),
        bookings: BookingService = Depends(get_bookings),
    ):
        return _response(_booking(await bookings.get_booking(booking_id, principal)))

    @app.get("/admin/bookings", response_model=ApiResponse)
    async def admin_list_bookings(
        status: str | None = None,
        principal: Principal = Depends(get_current_principal),
        bookings: BookingService = Depends(get_bookings),
    ):
        rows = await bookings.list_bookings(principal, status=status)
        return _response({"bookings": [_booking(b) for b in rows], "totalResults": len(rows)})

    @app.get("/admin/bookings/{booking_id}", response_model=ApiResponse)
    async def admin_get_booking(
        booking_id: str,
        principal: Principal = Depends(get_current_principal),
        bookings: BookingService = Depends(get_bookings),
    ):
        return _response(_booking(await bookings.get_for_operator(booking_id, principal)))

    @app.patch("/admin/bookings/{booking_id}", response_model=ApiResponse)
    async def update_booking(
        booking_id: str,
        payload: BookingStatusUpdate,
        principal: Principal = Depends(get_current_principal),
        bookings: BookingService = Depends(get_bookings),
    ):
        booking = await bookings.update_status(
            booking_id, payload.status, principal, cancellation_reason=payload.cancellation_reason
        )
        return _response(_booking(booking))

    @app.post("/bookings/{booking_id}/payments", response_model=ApiResponse)
    async def record_payment(
        booking_id: str,
        payload: PaymentRecord,
        principal: Principal = Depends(get_current_principal),
        bookings: BookingService = Depends(get_bookings),
    ):
        booking = await bookings.record_payment(
            booking_id, payload.kind, principal, payment_reference=payload.payment_reference
        )
        return _response(_booking(booking))

    # Site content

    @app.get("/content/{key}", response_model=ApiResponse)
    async def get_content_section(key: str, content: ContentCache = Depends(get_content)):
        return _response({"key": key, "content": await content.content(key)})

    @app.put("/admin/content/{key}", response_model=ApiResponse)
    async def put_content_section(
        key: str,
        payload: ContentUpdate,
        principal: Principal = Depends(get_current_principal),
        content: ContentCache = Depends(get_content),
    ):
        section = await content.put_content(key, payload, principal)
        return _response(section.model_dump(mode="json"))

    @app.get("/settings/{key}", response_model=ApiResponse)
    async def get_site_setting(key: str, content: ContentCache = Depends(get_content)):
        return _response({"key": key, "value": await content.setting(key)})

    @app.put("/admin/settings/{key}", response_model=ApiResponse)
    async def put_site_setting(
        key: str,
        payload: SettingUpdate,
        principal: Principal = Depends(get_current_principal),
        content: ContentCache = Depends(get_content),
    ):
        setting = await content.put_setting(key, payload, principal)
        return _response(setting.model_dump(mode="json"))


app = create_app()
