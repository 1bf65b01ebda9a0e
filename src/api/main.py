from fastapi import FastAPI, HTTPException, Depends, Query, Request, status
import os
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
import logging
import uuid
import asyncio
from datetime import datetime, date
from typing import Dict, Any, Optional, Awaitable, TypeVar
from pydantic import BaseModel, ValidationError

from src.models.request_models import (
    TripRequest,
    TripCreateRequest,
    TripUpdateRequest,
    TripStatus,
    GenerateItineraryRequest,
    RegenerateItineraryRequest,
    UserPreferences,
    UserProfileUpdateRequest,
)
from src.models.response_models import AuthenticatedUser, ItineraryResponse, ItineraryResult
from src.models.weather_models import WeatherSummary
from src.services.vertex_ai_service import VertexModelClient
from src.services.itinerary_generator import ItineraryGeneratorService
from src.services.weather_service import WeatherService, fallback_weather_summary
from src.utils.config import get_settings, validate_settings
from src.utils.exceptions import AuthError, TripValidationError
from src.utils.validators import TripRequestValidator
from src.utils.firestore_manager import DocumentStore, FirestoreManager, InMemoryDocumentStore, trip_collection_path, trip_document_path, user_document_path
from src.utils.firebase_auth import initialize_firebase_admin, verify_firebase_token, is_firebase_initialized, get_current_user

# Configure logging
logging.basicConfig(
    level=get_settings().LOG_LEVEL.upper(),
    format=get_settings().LOG_FORMAT
)
logger = logging.getLogger(__name__)

T = TypeVar("T")

# Initialize FastAPI app
app = FastAPI(
    title="AI Trip Planner API",
    description="Generate day-by-day travel itineraries using Google Vertex AI Gemini",
    version=get_settings().API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["*"]  # Configure appropriately for production
)

# Global services (initialized on startup)
model_client: Optional[VertexModelClient] = None
itinerary_generator: Optional[ItineraryGeneratorService] = None
fs_manager: Optional[DocumentStore] = None
weather_service: Optional[WeatherService] = None

DISCONNECT_POLL_SECONDS = 0.5
FALLBACK_MESSAGE = (
    "AI itinerary generation is temporarily unavailable, so a template itinerary was created. "
    "You can regenerate it later for a personalized plan."
)

class VerifyTokenRequest(BaseModel):
    token: str

@app.on_event("startup")
async def startup_event():
    """Initialize services on startup"""
    global model_client, itinerary_generator, fs_manager, weather_service

    settings = get_settings()

    if not validate_settings():
        logger.error("Invalid settings configuration; itineraries will fall back to templates")

    # Ensure GOOGLE_APPLICATION_CREDENTIALS is exported for ADC (Vertex AI)
    if settings.GOOGLE_APPLICATION_CREDENTIALS:
        os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = settings.GOOGLE_APPLICATION_CREDENTIALS
        logger.info("ADC path set from settings", extra={"gac_path": settings.GOOGLE_APPLICATION_CREDENTIALS})
    else:
        logger.info("No GOOGLE_APPLICATION_CREDENTIALS in settings; relying on gcloud ADC if present")

    logger.info("Initializing services...")

    # Model selection is lazy; nothing contacts Vertex AI until the first generation
    model_client = VertexModelClient(
        project_id=settings.GOOGLE_CLOUD_PROJECT,
        location=settings.GOOGLE_CLOUD_LOCATION
    )
    itinerary_generator = ItineraryGeneratorService(model_client)
    weather_service = WeatherService(api_key=settings.OPENWEATHER_API_KEY)
    if not weather_service.is_configured:
        logger.warning("OPENWEATHER_API_KEY not set; itineraries will be generated without weather context")

    if settings.USE_FIRESTORE:
        try:
            fs_manager = FirestoreManager()
        except Exception as fe:
            logger.warning("Firestore initialization failed; using in-memory trip store", extra={"error": str(fe)})
            fs_manager = InMemoryDocumentStore()
    else:
        logger.info("USE_FIRESTORE disabled; using in-memory trip store")
        fs_manager = InMemoryDocumentStore()

    try:
        initialize_firebase_admin()
    except Exception as fb_error:
        logger.warning(f"Firebase Admin SDK initialization failed: {fb_error}")
        logger.warning("Authenticated routes will reject requests without Firebase Admin SDK")

    logger.info("All services initialized")

@app.on_event("shutdown")
async def shutdown_event():
    """Clean up resources on shutdown"""
    if weather_service is not None:
        await weather_service.close()

# Dependencies (overridable in tests)

def get_pipeline() -> ItineraryGeneratorService:
    if itinerary_generator is None:
        raise HTTPException(status_code=503, detail="Itinerary generator not initialized")
    return itinerary_generator

def get_store() -> DocumentStore:
    if fs_manager is None:
        raise HTTPException(status_code=503, detail="Trip store not initialized")
    return fs_manager

def get_weather_service() -> Optional[WeatherService]:
    return weather_service

async def run_until_disconnect(request: Request, work: Awaitable[T]) -> T:
    """Await work, cancelling it if the client goes away first."""
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("[api] client disconnected; cancelling generation", extra={"path": request.url.path})
                task.cancel()
                raise HTTPException(status_code=499, detail="Client closed request")
    finally:
        if not task.done():
            task.cancel()

# Helpers

def _now() -> str:
    return datetime.utcnow().isoformat()

async def _load_trip(store: DocumentStore, user: AuthenticatedUser, trip_id: str) -> Dict[str, Any]:
    trip = await store.get(trip_document_path(user.uid, trip_id))
    if trip is None:
        raise HTTPException(status_code=404, detail="Trip not found")
    return trip

def _trip_request_from_document(
    trip: Dict[str, Any],
    preferences: Optional[UserPreferences] = None,
) -> TripRequest:
    """Rebuild the pipeline input from a stored trip document."""
    payload = {
        "destination": trip.get("destination"),
        "startDate": trip.get("startDate"),
        "endDate": trip.get("endDate"),
        "budget": trip.get("budget"),
        "numberOfUsers": trip.get("numberOfUsers"),
        "participants": trip.get("participants") or [],
        "currentLocation": trip.get("currentLocation"),
        "excludedPlaces": trip.get("excludedPlaces") or [],
        "userPreferences": preferences.model_dump(by_alias=True) if preferences else trip.get("preferences"),
    }
    try:
        return TripRequest.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Stored trip is incomplete: {e.error_count()} invalid fields")

async def _load_profile(store: DocumentStore, user: AuthenticatedUser) -> Dict[str, Any]:
    """Stored profile for the user, created from token claims on first access."""
    path = user_document_path(user.uid)
    profile = await store.get(path)
    if profile is None:
        profile = {
            "uid": user.uid,
            "email": user.email,
            "name": user.name,
            "picture": user.picture,
            "createdAt": _now(),
            "updatedAt": _now(),
        }
        await store.set(path, profile)
        logger.info("[api] user profile created", extra={"uid": user.uid})
        profile = await store.get(path)
    return profile

async def _generation_preferences(
    store: DocumentStore,
    user: AuthenticatedUser,
    trip: Dict[str, Any],
    requested: Optional[UserPreferences],
) -> Optional[UserPreferences]:
    # Request preferences win, then the trip's own, then the user's profile defaults
    if requested is not None or trip.get("preferences"):
        return requested
    profile = await store.get(user_document_path(user.uid))
    if profile and profile.get("preferences"):
        try:
            return UserPreferences.model_validate(profile["preferences"])
        except ValidationError as e:
            logger.warning("[api] ignoring invalid profile preferences", extra={"uid": user.uid, "errors": e.error_count()})
    return None

async def _weather_for(service: Optional[WeatherService], trip: TripRequest, include: bool) -> Optional[WeatherSummary]:
    if not include or service is None:
        return None
    return await service.get_weather_for_trip(trip.destination, trip.start_date, trip.end_date)

async def _persist_result(
    store: DocumentStore,
    user: AuthenticatedUser,
    trip_id: str,
    trip: TripRequest,
    result: ItineraryResult,
) -> None:
    # One write so readers never see a half-updated trip
    await store.update(trip_document_path(user.uid, trip_id), {
        "itinerary": result.itinerary.to_document(),
        "usedFallback": result.used_fallback,
        "excludedPlaces": trip.excluded_places,
        "status": TripStatus.PLANNED.value,
        "itineraryGeneratedAt": _now(),
        "updatedAt": _now(),
    })

def _itinerary_response(trip_id: str, result: ItineraryResult) -> Dict[str, Any]:
    response = ItineraryResponse(
        success=True,
        trip_id=trip_id,
        itinerary=result.itinerary.to_document(),
        used_fallback=result.used_fallback,
        message=FALLBACK_MESSAGE if result.used_fallback else None,
    )
    return response.model_dump(by_alias=True, exclude_none=True)

# Service endpoints

@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": "AI Trip Planner API",
        "version": get_settings().API_VERSION,
        "description": "Generate day-by-day travel itineraries using AI",
        "docs": "/docs",
        "health": "/health"
    }

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    services = {
        "itinerary_generator": itinerary_generator is not None,
        "trip_store": fs_manager is not None,
        "weather": weather_service is not None and weather_service.is_configured,
        "firebase_auth": is_firebase_initialized(),
    }
    healthy = services["itinerary_generator"] and services["trip_store"]
    return {
        "status": "healthy" if healthy else "degraded",
        "timestamp": _now(),
        "services": services,
        "version": get_settings().API_VERSION
    }

@app.get("/api/status")
async def service_status():
    """AI model selection state, for operators"""
    return {
        "vertexAi": {
            "initialized": bool(model_client and model_client.is_initialized),
            "unavailable": bool(model_client and model_client.is_unavailable),
            "modelId": model_client.model_id if model_client else None,
            "candidates": model_client.candidate_models if model_client else [],
        },
        "firestore": isinstance(fs_manager, FirestoreManager),
        "firebaseAuth": is_firebase_initialized(),
        "weather": bool(weather_service and weather_service.is_configured),
        "timestamp": _now(),
    }

# Auth endpoints

@app.post("/api/auth/verify-token")
async def verify_token(payload: VerifyTokenRequest):
    try:
        user = verify_firebase_token(payload.token)
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"success": True, "user": user.model_dump(by_alias=True)}

@app.get("/api/auth/user")
async def current_user(
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    return {"success": True, "user": await _load_profile(store, user)}

@app.put("/api/auth/user")
async def update_current_user(
    payload: UserProfileUpdateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    await _load_profile(store, user)
    changes = payload.changes()
    changes["updatedAt"] = _now()
    await store.update(user_document_path(user.uid), changes)
    logger.info("[api] user profile updated", extra={"uid": user.uid, "fields": sorted(changes)})
    return {"success": True, "user": await _load_profile(store, user)}

# Trip endpoints

@app.get("/api/trips")
async def list_trips(
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    trips = await store.list_children(trip_collection_path(user.uid))
    trips.sort(key=lambda t: t.get("createdAt") or "", reverse=True)
    return {"success": True, "trips": trips}

@app.post("/api/trips", status_code=status.HTTP_201_CREATED)
async def create_trip(
    payload: TripCreateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    if payload.end_date < payload.start_date:
        raise HTTPException(status_code=400, detail="End date must be on or after start date")

    trip_id = str(uuid.uuid4())
    trip = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
    trip.update({
        "id": trip_id,
        "userId": user.uid,
        "status": TripStatus.PLANNING.value,
        "excludedPlaces": [],
        "createdAt": _now(),
        "updatedAt": _now(),
    })
    TripRequestValidator.ensure_valid(_trip_request_from_document(trip))
    await store.set(trip_document_path(user.uid, trip_id), trip)
    logger.info("[api] trip created", extra={"trip_id": trip_id, "destination": payload.destination})
    return {"success": True, "trip": trip}

@app.get("/api/trips/{trip_id}")
async def get_trip(
    trip_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    return {"success": True, "trip": await _load_trip(store, user, trip_id)}

@app.put("/api/trips/{trip_id}")
async def update_trip(
    trip_id: str,
    payload: TripUpdateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    existing = await _load_trip(store, user, trip_id)
    changes = payload.changes()
    start = changes.get("startDate") or existing.get("startDate")
    end = changes.get("endDate") or existing.get("endDate")
    if start and end and date.fromisoformat(str(end)) < date.fromisoformat(str(start)):
        raise HTTPException(status_code=400, detail="End date must be on or after start date")

    changes["updatedAt"] = _now()
    await store.update(trip_document_path(user.uid, trip_id), changes)
    return {"success": True, "trip": await _load_trip(store, user, trip_id)}

@app.delete("/api/trips/{trip_id}")
async def delete_trip(
    trip_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    if not await store.delete(trip_document_path(user.uid, trip_id)):
        raise HTTPException(status_code=404, detail="Trip not found")
    logger.info("[api] trip deleted", extra={"trip_id": trip_id})
    return {"success": True, "message": "Trip deleted successfully"}

# Itinerary endpoints

@app.post("/api/trips/{trip_id}/generate-itinerary")
async def generate_itinerary(
    trip_id: str,
    request: Request,
    payload: Optional[GenerateItineraryRequest] = None,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    pipeline: ItineraryGeneratorService = Depends(get_pipeline),
    weather: Optional[WeatherService] = Depends(get_weather_service),
):
    payload = payload or GenerateItineraryRequest()
    stored = await _load_trip(store, user, trip_id)
    preferences = await _generation_preferences(store, user, stored, payload.preferences)
    trip = _trip_request_from_document(stored, preferences)
    TripRequestValidator.ensure_valid(trip)

    logger.info("[api] generating itinerary", extra={"trip_id": trip_id, "destination": trip.destination})
    summary = await _weather_for(weather, trip, payload.include_weather)
    result = await run_until_disconnect(request, pipeline.generate_itinerary(trip, summary))

    await _persist_result(store, user, trip_id, trip, result)
    return _itinerary_response(trip_id, result)

@app.post("/api/trips/{trip_id}/regenerate-itinerary")
async def regenerate_itinerary(
    trip_id: str,
    request: Request,
    payload: RegenerateItineraryRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
    pipeline: ItineraryGeneratorService = Depends(get_pipeline),
    weather: Optional[WeatherService] = Depends(get_weather_service),
):
    stored = await _load_trip(store, user, trip_id)
    preferences = await _generation_preferences(store, user, stored, payload.preferences)
    trip = _trip_request_from_document(stored, preferences)
    updated = trip.with_excluded_places(payload.excluded_places)
    TripRequestValidator.ensure_valid(updated)

    logger.info(
        "[api] regenerating itinerary",
        extra={"trip_id": trip_id, "excluded": payload.excluded_places},
    )
    summary = await _weather_for(weather, trip, payload.include_weather)
    result = await run_until_disconnect(request, pipeline.regenerate_itinerary(trip, payload.excluded_places, summary))

    await _persist_result(store, user, trip_id, updated, result)
    return _itinerary_response(trip_id, result)

# Utility endpoints

@app.get("/api/weather")
async def get_weather(
    destination: str = Query(..., min_length=1),
    start_date: date = Query(...),
    end_date: date = Query(...),
    weather: Optional[WeatherService] = Depends(get_weather_service),
):
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="End date must be on or after start date")
    summary = None
    if weather is not None:
        summary = await weather.get_weather_for_trip(destination, start_date, end_date)
    used_fallback = summary is None
    if used_fallback:
        summary = fallback_weather_summary(destination)
    return {
        "success": True,
        "usedFallback": used_fallback,
        "weather": summary.model_dump(mode="json", exclude_none=True),
    }

@app.post("/api/validate-trip")
async def validate_trip(trip: TripRequest):
    result = TripRequestValidator.validate_complete_request(trip)
    result["suggestions"] = TripRequestValidator.suggest_improvements(trip)
    result["tripLengthDays"] = trip.trip_length_days
    return result

# Error handlers

@app.exception_handler(TripValidationError)
async def trip_validation_exception_handler(request, exc):
    """Reject trips that fail validation before any generation work"""
    logger.info("[api] trip rejected by validation", extra={"errors": exc.errors, "path": request.url.path})
    return JSONResponse(
        status_code=400,
        content={
            "error": str(exc),
            "errors": exc.errors,
            "timestamp": _now(),
            "path": str(request.url)
        }
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Handle HTTP exceptions"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "timestamp": _now(),
            "path": str(request.url)
        }
    )

@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "timestamp": _now(),
            "path": str(request.url)
        }
    )
