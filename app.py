from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from routers.rooms import rooms_router
from registry import connection_registry
from transport import websocket_transport
from broadcast import BroadcastEngine
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL, WS_PATH
from schemas.rooms import HealthResponse
from logging_config import get_logger, setup_logging
import uuid

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms_router)

# Connection state lives in the registry; the transport only holds sockets for writing.
broadcast_engine = BroadcastEngine(connection_registry, websocket_transport)

logger.info("FastAPI application initialized")


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", connections=connection_registry.count())


@app.websocket(WS_PATH)
async def websocket_endpoint(websocket: WebSocket):
    """Relay endpoint.

    Frames of one connection are handled strictly in order, and exactly one of
    on_disconnect / on_transport_error runs once the receive loop is over.
    """
    await websocket.accept()
    connection_id = str(uuid.uuid4())
    websocket_transport.attach(connection_id, websocket)
    broadcast_engine.on_connect(connection_id)

    error = None
    message_count = 0
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug(f"Connection {connection_id} closed with code {message.get('code')}")
                break

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue

            message_count += 1
            logger.debug(f"Received message #{message_count} from connection {connection_id}")
            await broadcast_engine.on_message(connection_id, raw)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket disconnected normally for connection {connection_id}")
    except Exception as e:
        error = e
    finally:
        websocket_transport.detach(connection_id)
        if error is not None:
            broadcast_engine.on_transport_error(connection_id, error)
        else:
            broadcast_engine.on_disconnect(connection_id)
