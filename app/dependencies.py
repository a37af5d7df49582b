# app/dependencies.py
"""FastAPI dependencies for process-wide objects held on app.state."""

import random
from fastapi import Request
from app.services.av_orchestrator import AVOrchestrator


def get_orchestrator(request: Request) -> AVOrchestrator:
    return request.app.state.orchestrator


def get_rng(request: Request) -> random.Random:
    return request.app.state.rng
