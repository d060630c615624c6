from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import Depends, FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from catalog import BookFormError, CatalogError, CatalogStore, build_older_report, parse_book_form
from config import configure_logging, get_settings
from contacts import filter_by_family_suffix, load_contacts
from geo import Coordinate, fetch_route, geocode_address

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Application setup
# -----------------------------------------------------------------------------

app = FastAPI(title="Book Catalog API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173", "*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store() -> CatalogStore:
    if not hasattr(get_store, "_instance"):
        get_store._instance = CatalogStore()
    return get_store._instance  # type: ignore[attr-defined]


@app.on_event("startup")
def _startup() -> None:
    configure_logging()


@app.on_event("shutdown")
def _shutdown() -> None:
    store = getattr(get_store, "_instance", None)
    if isinstance(store, CatalogStore):
        store.close()


# -----------------------------------------------------------------------------
# Pydantic models
# -----------------------------------------------------------------------------


class BookCreate(BaseModel):
    name: str = ""
    author_name: str = ""
    year_of_publish: Union[int, str]
    number_of_pages: Union[int, str]
    publisher_address: str = ""


class OlderBooksResponse(BaseModel):
    years: int
    total: int
    older_count: int
    percentage: float
    percentage_label: str
    books: List[Dict[str, Any]]


class CoordinatePayload(BaseModel):
    latitude: float
    longitude: float


class LocationResponse(BaseModel):
    book_id: int
    publisher_address: str
    coordinate: CoordinatePayload


class RouteResponse(BaseModel):
    book_id: int
    source: CoordinatePayload
    destination: CoordinatePayload
    distance: float
    duration: float
    coordinates: List[CoordinatePayload] = Field(default_factory=list)


class ContactPayload(BaseModel):
    given_name: str
    family_name: str
    display_name: str


# -----------------------------------------------------------------------------
# Helper utilities
# -----------------------------------------------------------------------------


def _require_book(store: CatalogStore, book_id: int) -> Dict[str, Any]:
    try:
        record = store.get_book(book_id)
    except CatalogError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return record


def _locate_publisher(record: Dict[str, Any]) -> Coordinate:
    coordinate = geocode_address(record.get("publisher_address"))
    if coordinate is None:
        logger.warning("Publisher address of book %s could not be geocoded", record.get("id"))
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Unable to geocode the publisher address",
        )
    return coordinate


def _as_payload(coordinate: Coordinate) -> CoordinatePayload:
    return CoordinatePayload(latitude=coordinate.latitude, longitude=coordinate.longitude)


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


@app.get("/api/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/books")
def list_books(store: CatalogStore = Depends(get_store)) -> List[Dict[str, Any]]:
    try:
        return store.list_books()
    except CatalogError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@app.get("/api/books/older", response_model=OlderBooksResponse)
def older_books(
    years: Optional[int] = Query(None, ge=0),
    store: CatalogStore = Depends(get_store),
) -> OlderBooksResponse:
    threshold = get_settings().older_than_years if years is None else years
    try:
        books = store.list_books()
    except CatalogError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    report = build_older_report(books, years=threshold)
    return OlderBooksResponse(
        years=report.years,
        total=report.total,
        older_count=len(report.books),
        percentage=report.percentage,
        percentage_label=report.percentage_label,
        books=report.books,
    )


@app.get("/api/books/{book_id}")
def get_book(book_id: int, store: CatalogStore = Depends(get_store)) -> Dict[str, Any]:
    return _require_book(store, book_id)


@app.post("/api/books", status_code=status.HTTP_201_CREATED)
def create_book(payload: BookCreate, store: CatalogStore = Depends(get_store)) -> Dict[str, Any]:
    try:
        record = parse_book_form(
            payload.name,
            payload.author_name,
            payload.year_of_publish,
            payload.number_of_pages,
            payload.publisher_address,
        )
    except BookFormError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    try:
        book_id = store.add_book(record)
        saved = store.get_book(book_id)
    except CatalogError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    if not saved:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save book")
    return saved


@app.delete(
    "/api/books/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    response_model=None,
)
def delete_book(book_id: int, store: CatalogStore = Depends(get_store)) -> Response:
    _require_book(store, book_id)
    try:
        store.delete_book(book_id)
    except CatalogError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/api/books/{book_id}/location", response_model=LocationResponse)
def book_location(book_id: int, store: CatalogStore = Depends(get_store)) -> LocationResponse:
    record = _require_book(store, book_id)
    coordinate = _locate_publisher(record)
    return LocationResponse(
        book_id=book_id,
        publisher_address=record["publisher_address"],
        coordinate=_as_payload(coordinate),
    )


@app.get("/api/books/{book_id}/route", response_model=RouteResponse)
def book_route(
    book_id: int,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    profile: str = Query("driving", pattern="^(driving|walking|cycling)$"),
    store: CatalogStore = Depends(get_store),
) -> RouteResponse:
    record = _require_book(store, book_id)
    source = _locate_publisher(record)
    destination = Coordinate(latitude=latitude, longitude=longitude)
    route = fetch_route(source, destination, profile=profile)
    if route is None:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="No route available")
    return RouteResponse(
        book_id=book_id,
        source=_as_payload(source),
        destination=_as_payload(destination),
        distance=route.distance,
        duration=route.duration,
        coordinates=[_as_payload(point) for point in route.coordinates],
    )


@app.get("/api/contacts", response_model=List[ContactPayload])
def list_contacts(suffix: Optional[str] = Query(None)) -> List[ContactPayload]:
    wanted = get_settings().contact_suffix if suffix is None else suffix
    contacts = filter_by_family_suffix(load_contacts(), wanted)
    return [
        ContactPayload(
            given_name=contact.given_name,
            family_name=contact.family_name,
            display_name=contact.display_name,
        )
        for contact in contacts
    ]
