"""FastAPI application."""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from fieldforms.config import Settings
from fieldforms.store import DocumentStore, create_store
from fieldforms.validation import (
    ExtraValidationError,
    FunctionRegistry,
    RuleSyntaxError,
    ValidationService,
    ValidationSpec,
    register_all_builtins,
    register_extra_validations,
)

logger = logging.getLogger(__name__)

# Global instances (initialized on startup)
settings: Settings | None = None
store: DocumentStore | None = None
validation_service: ValidationService | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize on startup, cleanup on shutdown."""
    global settings, store, validation_service

    register_all_builtins()
    register_extra_validations()

    cwd = Path.cwd()
    base_path = cwd.parent if cwd.name == "backend" else cwd

    settings = Settings.from_env(base_path)
    store = create_store(settings.store_config(base_path))
    validation_service = ValidationService.from_settings(store, settings)
    logger.info("Loaded validations for %d form(s)", len(settings.forms))

    yield

    close = getattr(store, "close", None)
    if close is not None:
        close()


app = FastAPI(title="fieldforms", lifespan=lifespan)

# CORS for the form designer dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.environ.get("FIELDFORMS_CORS_ORIGINS", "http://localhost:5173").split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Request Models
# =============================================================================


class FormValidateRequest(BaseModel):
    doc: dict[str, Any]
    ignores: list[str] = Field(default_factory=list)


class ValidateRequest(FormValidateRequest):
    validations: list[dict[str, Any]] = Field(default_factory=list)


# =============================================================================
# Endpoints
# =============================================================================


def _service() -> ValidationService:
    if validation_service is None:
        raise HTTPException(status_code=503, detail="Validation service not initialized")
    return validation_service


async def _run(doc: dict[str, Any], validations: list[ValidationSpec], ignores: list[str]) -> dict[str, Any]:
    try:
        errors = await _service().validate(doc, validations, ignores)
    except RuleSyntaxError as e:
        raise HTTPException(status_code=422, detail=e.errors)
    except ExtraValidationError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return {
        "valid": not errors,
        "errors": [error.to_dict() for error in errors],
    }


@app.get("/api/health")
async def health():
    return {"status": "ok"}


@app.get("/api/functions")
async def list_functions():
    """Documentation for every function usable in rules."""
    return FunctionRegistry.export_documentation()


@app.post("/api/validate")
async def validate(request: ValidateRequest):
    """Validate a report against explicitly supplied validations."""
    validations = [ValidationSpec.from_dict(v) for v in request.validations]
    return await _run(request.doc, validations, request.ignores)


@app.post("/api/forms/{form}/validate")
async def validate_form(form: str, request: FormValidateRequest):
    """Validate a report against the validations configured for a form."""
    if settings is None or form not in settings.forms:
        raise HTTPException(status_code=404, detail=f"Form '{form}' not configured")
    return await _run(request.doc, settings.validations_for(form), request.ignores)
