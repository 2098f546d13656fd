import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from catalog.book import (
    BookInstance,
    BookInstanceStatus,
    bookinstance_url,
    due_back_formatted,
    due_back_iso,
    status_css_class,
)
from catalog.config import settings
from catalog.library import Library, NotFoundError, StoreError
from catalog.validators import FieldError, validate_book_instance

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

COPY_NOT_FOUND = "Book copy not found"
FORM_FIELDS = ("book", "imprint", "status", "due_back")


# --- Models ---
class HealthModel(BaseModel):
    status: str
    timestamp: str
    total_copies: int
    db: bool


templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.globals.update(
    app_name=settings.app_name,
    catalog_prefix=settings.catalog_prefix,
    statuses=[s.value for s in BookInstanceStatus],
    bookinstance_url=bookinstance_url,
    due_back_formatted=due_back_formatted,
    due_back_iso=due_back_iso,
    status_css_class=status_css_class,
)


def _library_for(app: FastAPI) -> Library:
    library = getattr(app.state, "library", None)
    if library is None:
        library = app.state.library = Library()
    return library


def get_library(request: Request) -> Library:
    """Dependency returning the store handle the app was created with."""
    return _library_for(request.app)


def _list_url() -> str:
    return f"{settings.catalog_prefix}/bookinstances"


def _render_form(
    request: Request,
    title: str,
    book_list: List[Dict[str, str]],
    bookinstance: Optional[BookInstance] = None,
    selected_book: Optional[str] = None,
    errors: Optional[List[FieldError]] = None,
):
    return templates.TemplateResponse(
        request,
        "bookinstance_form.html",
        {
            "title": title,
            "book_list": book_list,
            "bookinstance": bookinstance,
            "selected_book": selected_book,
            "errors": errors or [],
        },
    )


async def _read_form(request: Request) -> Dict[str, Any]:
    form = await request.form()
    return {name: form.get(name) for name in FORM_FIELDS}


def _unsaved_copy(fields: Dict[str, Any], copy_id: Optional[str] = None) -> BookInstance:
    return BookInstance(
        id=copy_id,
        book_id=fields["book"],
        imprint=fields["imprint"],
        status=fields["status"],
        due_back=fields["due_back"],
    )


router = APIRouter(prefix=settings.catalog_prefix)


@router.get("/bookinstances", response_class=HTMLResponse)
async def bookinstance_list(request: Request, library: Library = Depends(get_library)):
    copies = await asyncio.to_thread(library.list_book_instances)
    return templates.TemplateResponse(
        request,
        "bookinstance_list.html",
        {"title": "Book Instance List", "bookinstance_list": copies},
    )


# Declared before /bookinstance/{copy_id} so "create" is not taken for an id
@router.get("/bookinstance/create", response_class=HTMLResponse)
async def bookinstance_create_get(request: Request, library: Library = Depends(get_library)):
    book_list = await asyncio.to_thread(library.list_books_for_selection)
    return _render_form(request, "Create BookInstance", book_list)


@router.post("/bookinstance/create", response_class=HTMLResponse)
async def bookinstance_create_post(request: Request, library: Library = Depends(get_library)):
    result = validate_book_instance(await _read_form(request))

    if not result.is_valid:
        book_list = await asyncio.to_thread(library.list_books_for_selection)
        copy = _unsaved_copy(result.fields)
        return _render_form(
            request,
            "Create BookInstance",
            book_list,
            bookinstance=copy,
            selected_book=copy.book_id,
            errors=result.errors,
        )

    copy = await asyncio.to_thread(library.create_book_instance, result.fields)
    return RedirectResponse(bookinstance_url(copy), status_code=303)


@router.get("/bookinstance/{copy_id}", response_class=HTMLResponse)
async def bookinstance_detail(copy_id: str, request: Request, library: Library = Depends(get_library)):
    copy = await asyncio.to_thread(library.find_book_instance, copy_id, True)
    return _render_detail(request, copy, show_delete_form=False)


@router.get("/bookinstance/{copy_id}/delete", response_class=HTMLResponse)
async def bookinstance_delete_get(copy_id: str, request: Request, library: Library = Depends(get_library)):
    copy = await asyncio.to_thread(library.find_book_instance, copy_id, True)
    return _render_detail(request, copy, show_delete_form=True)


@router.post("/bookinstance/{copy_id}/delete")
async def bookinstance_delete_post(copy_id: str, request: Request, library: Library = Depends(get_library)):
    form = await request.form()
    target = str(form.get("bookinstanceid") or "").strip() or copy_id
    await asyncio.to_thread(library.delete_book_instance, target)
    return RedirectResponse(_list_url(), status_code=303)


@router.get("/bookinstance/{copy_id}/update", response_class=HTMLResponse)
async def bookinstance_update_get(copy_id: str, request: Request, library: Library = Depends(get_library)):
    # The two reads are independent; gather re-raises the first failure.
    book_list, copy = await asyncio.gather(
        asyncio.to_thread(library.list_books_for_selection),
        asyncio.to_thread(library.find_book_instance, copy_id),
    )
    return _render_form(
        request,
        "Update BookInstance",
        book_list,
        bookinstance=copy,
        selected_book=copy.book_id,
    )


@router.post("/bookinstance/{copy_id}/update", response_class=HTMLResponse)
async def bookinstance_update_post(copy_id: str, request: Request, library: Library = Depends(get_library)):
    result = validate_book_instance(await _read_form(request))

    if not result.is_valid:
        book_list = await asyncio.to_thread(library.list_books_for_selection)
        copy = _unsaved_copy(result.fields, copy_id)
        return _render_form(
            request,
            "Update BookInstance",
            book_list,
            bookinstance=copy,
            selected_book=copy.book_id,
            errors=result.errors,
        )

    copy = await asyncio.to_thread(library.update_book_instance, copy_id, result.fields)
    return RedirectResponse(bookinstance_url(copy), status_code=303)


def _render_detail(request: Request, copy: BookInstance, show_delete_form: bool):
    book_title = copy.book.title if copy.book else "Unknown book"
    return templates.TemplateResponse(
        request,
        "bookinstance_detail.html",
        {
            "title": f"Copy: {book_title}",
            "bookinstance": copy,
            "show_delete_form": show_delete_form,
        },
    )


def _render_error(request: Request, status_code: int, message: str):
    return templates.TemplateResponse(
        request,
        "error.html",
        {"title": "Error", "message": message, "status_code": status_code},
        status_code=status_code,
    )


def create_app(library: Optional[Library] = None) -> FastAPI:
    """Build the catalog application around an explicit store handle.

    When no Library is given, one is opened on ``settings.data_file`` the first
    time it is needed.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = _library_for(app)
        logger.info(f"Starting {settings.app_name} with database {store.db_file}")
        # Seed only an empty catalog, so restarts never import the file twice
        if settings.seed_file and await asyncio.to_thread(store.count_books) == 0:
            counts = await asyncio.to_thread(store.import_json, settings.seed_file)
            logger.info(f"Seeded catalog from {settings.seed_file}: {counts}")
        yield
        logger.info(f"Shutting down {settings.app_name}")

    app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug, lifespan=lifespan)
    app.state.library = library

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        logger.info(f"{request.method} {request.url.path}: {exc}")
        return _render_error(request, 404, COPY_NOT_FOUND)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        return _render_error(request, 500, "The catalog is unavailable right now.")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _render_error(request, exc.status_code, str(exc.detail))

    @app.get("/health", response_model=HealthModel)
    async def health(request: Request):
        """Lightweight health endpoint: checks the database and counts copies."""
        db_ok = True
        total_copies = 0
        try:
            total_copies = await asyncio.to_thread(_library_for(request.app).count_book_instances)
        except StoreError:
            db_ok = False
        payload = HealthModel(
            status="healthy" if db_ok else "unhealthy",
            timestamp=datetime.utcnow().isoformat() + "Z",
            total_copies=total_copies,
            db=db_ok,
        )
        return JSONResponse(payload.model_dump(), status_code=200 if db_ok else 503)

    @app.get("/")
    async def index():
        return RedirectResponse(_list_url(), status_code=303)

    app.include_router(router)
    return app


app = create_app()
