import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError, ResponseValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from api_keys import ApiKeyStatus, api_keys_manager
from carbon import compute_carbon_breakdown
from database import GraphConfigurationError, GraphQueryError, db
from models import (
    CarbonBreakdown,
    ErrorResponse,
    GraphData,
    GraphStats,
    RiskReport,
    SpeakRequest,
    VoiceChatRequest,
    VoiceChatResponse,
)
from risks import analyze_risks
from subgraph import expand_node, fetch_building_graph
from tts import TTSError, text_to_speech
from voice_assistant import answer_question

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("api")

app = FastAPI(title="Building Passport Graph API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}

STORE_ERRORS = (GraphQueryError, GraphConfigurationError)


def error_response(status_code: int, error: str, details: Optional[str] = None, **extra) -> JSONResponse:
    """Uniform ``{error, details}`` body."""
    content = ErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(400, "Invalid request", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(ResponseValidationError)
async def response_validation_exception_handler(request: Request, exc: ResponseValidationError):
    logger.error(f"Response validation failed for {request.url.path}: {exc.errors()}")
    return error_response(500, "Invalid response from server", str(exc.errors()))


@app.on_event("startup")
async def startup_event():
    """Connect to the graph store. Missing connection settings abort startup."""
    logger.info("Starting server warmup...")
    db.warmup()
    logger.info("Server ready")


@app.on_event("shutdown")
async def shutdown_event():
    db.close()


@app.get("/")
async def root():
    return {"message": "Building Passport Graph API is running"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


# =============================================================================
# GRAPH ENDPOINTS
# =============================================================================

@app.get("/api/graph/building/{building_id}", response_model=GraphData, responses=ERROR_RESPONSES)
def get_building_graph(building_id: str, depth: Optional[str] = None, view: Optional[str] = None):
    """Stakeholder-filtered subgraph around a building.

    Args:
        building_id: Business id of the Building node
        depth: Hop count (default 2, clamped to 1..4)
        view: consumer | manufacturer | recycler | regulator (default consumer)
    """
    building_id = building_id.strip()
    if not building_id:
        return error_response(400, "Building id is required")
    try:
        return fetch_building_graph(building_id, depth=depth, view=view)
    except Exception as e:
        logger.exception(f"Error fetching building graph {building_id}: {e}")
        return error_response(500, "Failed to fetch building graph", str(e))


@app.get("/api/graph/expand/{node_id}", response_model=GraphData, responses=ERROR_RESPONSES)
def get_expanded_node(node_id: str):
    """One-hop neighborhood of a node, for incremental expansion in the UI."""
    node_id = node_id.strip()
    if not node_id:
        return error_response(400, "Node id is required")
    try:
        return expand_node(node_id)
    except Exception as e:
        logger.exception(f"Error expanding node {node_id}: {e}")
        return error_response(500, "Failed to expand node", str(e))


@app.get("/api/graph/carbon/{building_id}", response_model=CarbonBreakdown, responses=ERROR_RESPONSES)
def get_carbon_breakdown(building_id: str):
    """Embodied carbon per building element category."""
    building_id = building_id.strip()
    if not building_id:
        return error_response(400, "Building id is required")
    try:
        return compute_carbon_breakdown(building_id)
    except Exception as e:
        logger.exception(f"Error fetching carbon data for {building_id}: {e}")
        return error_response(500, "Failed to fetch carbon data", str(e))


@app.get("/api/graph/risks/{building_id}", response_model=RiskReport, responses=ERROR_RESPONSES)
def get_supply_chain_risks(building_id: str):
    """Heuristic supply-chain risks, in detector order."""
    building_id = building_id.strip()
    if not building_id:
        return error_response(400, "Building id is required")
    try:
        return analyze_risks(building_id)
    except Exception as e:
        logger.exception(f"Error fetching risk data for {building_id}: {e}")
        return error_response(500, "Failed to fetch risk data", str(e))


@app.get("/api/graph/stats", response_model=GraphStats)
def get_graph_stats():
    try:
        return GraphStats(
            nodes=db.get_node_count(),
            relationships=db.get_relationship_count(),
            connected=True,
        )
    except STORE_ERRORS as e:
        logger.warning(f"Graph stats unavailable: {e}")
        return GraphStats(nodes=0, relationships=0, connected=False)


# =============================================================================
# VOICE ENDPOINTS
# =============================================================================

@app.post("/api/voice/chat", response_model=VoiceChatResponse, responses=ERROR_RESPONSES)
def voice_chat(request: VoiceChatRequest):
    """Answer a spoken/typed question about the building."""
    message = request.message.strip()
    if not message:
        return error_response(400, "Message is required")
    try:
        return answer_question(message)
    except Exception as e:
        logger.exception(f"Voice chat error: {e}")
        return error_response(
            500,
            "Failed to process voice chat",
            str(e),
            response="I'm having trouble processing that request. Please try again.",
        )


@app.post("/api/voice/speak", responses={**ERROR_RESPONSES, 200: {"content": {"audio/mpeg": {}}}})
def speak(request: SpeakRequest):
    """Text-to-speech; returns MP3 audio."""
    if not request.text.strip():
        return error_response(400, "Text is required")
    try:
        audio = text_to_speech(request.text, voice_id=request.voice_id)
    except TTSError as e:
        logger.error(f"TTS error: {e}")
        return error_response(500, "Failed to generate speech", str(e))
    except Exception as e:
        logger.exception(f"Unexpected TTS failure: {e}")
        return error_response(500, "Failed to generate speech", str(e))
    return Response(content=audio, media_type="audio/mpeg")


@app.get("/api/keys/status", response_model=list[ApiKeyStatus])
async def get_api_key_status():
    """Which external services have keys configured (masked)."""
    return api_keys_manager.get_status()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
