"""Handler for POST /api/update-generator.

Validates the body, overwrites the stored attribution, and drops the local
cache entry so the next visit re-reads the record.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from mirage.errors import ErrorCode, MirageError
from mirage.models.inputs import UpdateGeneratorInput, UpdateGeneratorOutput

if TYPE_CHECKING:
    from mirage.state import AppState


async def handle(body: object, state: AppState) -> dict:
    """Handle an attribution update. ``body`` is the decoded JSON request body."""
    log = structlog.get_logger().bind(route="update_generator")
    log.info("handler_called")

    try:
        validated = UpdateGeneratorInput.model_validate(body)
    except ValidationError as exc:
        raise MirageError(
            code=ErrorCode.INVALID_INPUT,
            message="Path is required",
            suggestion='Send a JSON object like {"path": "coffee-shop", "xHandle": "alice"}.',
        ) from exc

    update = await state.orchestrator.update_generator(validated.path, validated.x_handle)
    generator = update.handle or "Anonymous"
    output = UpdateGeneratorOutput(
        success=True,
        generator=generator,
        message=f"Generator updated to @{generator}",
        updated_rows=update.updated_rows,
    )
    return output.model_dump(mode="json", by_alias=True)
