from __future__ import annotations

from typing import List

from fastapi import FastAPI, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from bfasm.assembly import TAPE_SIZE, render_unit
from bfasm.emulator import InstructionEmulator, StepLimitExceeded, TapeBoundsExceeded
from bfasm.exceptions import TranslationError
from bfasm.translator import BrainfuckTranslator

SIMULATION_STEP_LIMIT = 100_000


def _translation_error_detail(exc: TranslationError) -> dict:
    return {
        "category": exc.category,
        "message": str(exc),
        "offset": getattr(exc, "offset", None),
        "loop_id": getattr(exc, "loop_id", None),
    }


class TranslateRequest(BaseModel):
    source: str
    tape_size: int = Field(default=TAPE_SIZE, ge=1)
    bounds_check: bool = False


class TranslateResponse(BaseModel):
    assembly: str
    fragments: List[str]
    loop_count: int


class SimulateRequest(BaseModel):
    source: str
    input: str = ""
    max_steps: int = Field(default=SIMULATION_STEP_LIMIT, ge=1)
    tape_size: int = Field(default=TAPE_SIZE, ge=1)
    bounds_check: bool = False

    @field_validator("input")
    @classmethod
    def validate_input(cls, value: str) -> str:
        try:
            value.encode("latin-1")
        except UnicodeEncodeError as exc:
            raise ValueError("input must only contain characters U+0000 to U+00FF") from exc
        return value


class SimulateResponse(BaseModel):
    output: str
    output_bytes: List[int]
    steps: int
    pointer: int


def _translate(source: str, tape_size: int, bounds_check: bool) -> tuple[BrainfuckTranslator, List[str]]:
    translator = BrainfuckTranslator(tape_size=tape_size, bounds_check=bounds_check)
    try:
        fragments = translator.translate(source)
    except TranslationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=_translation_error_detail(exc),
        ) from exc
    return translator, fragments


def create_app() -> FastAPI:
    app = FastAPI(title="bfasm API", version="0.1.0")

    @app.post("/api/translate", response_model=TranslateResponse)
    def translate(payload: TranslateRequest) -> TranslateResponse:
        translator, fragments = _translate(
            payload.source, payload.tape_size, payload.bounds_check
        )
        assembly = render_unit(
            fragments,
            tape_size=translator.tape_size,
            bounds_check=translator.bounds_check,
        )
        return TranslateResponse(
            assembly=assembly,
            fragments=fragments,
            loop_count=sum(1 for fragment in fragments if fragment.startswith(".Lloop_")),
        )

    @app.post("/api/simulate", response_model=SimulateResponse)
    def simulate(payload: SimulateRequest) -> SimulateResponse:
        _, fragments = _translate(payload.source, payload.tape_size, payload.bounds_check)
        emulator = InstructionEmulator(tape_length=payload.tape_size)
        steps = 0
        try:
            for state in emulator.step(
                fragments,
                input_data=payload.input.encode("latin-1"),
                max_steps=payload.max_steps,
                tape_window=0,
            ):
                steps = state.step
        except (StepLimitExceeded, TapeBoundsExceeded) as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=str(exc),
            ) from exc

        output = bytes(emulator.output_buffer)
        return SimulateResponse(
            output=output.decode("latin-1"),
            output_bytes=list(output),
            steps=steps,
            pointer=emulator.pointer,
        )

    return app


__all__ = ["create_app"]
