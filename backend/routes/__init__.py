"""FastAPI API endpoints under /api.

Endpoint groups: health, characters (read-only registry), chat (send a
message, conversation history, latest conversation per character) and
ai (active provider info + runtime switch).

Engine errors map to status codes here and nowhere else:
NotFoundError 404, ValidationError 400, PromptError 500,
GenerationFailure 502, StorageFailure 503.
"""

from fastapi import APIRouter

from .characters import router as characters_router
from .chat import router as chat_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(characters_router)
router.include_router(chat_router)
