"""Process-wide runtime container: stores, model clients and services.

Built once by the app lifespan (or handed to ``create_app`` by tests) and
reached from routes through ``request.app.state.runtime``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request

from holdthread.config import runtime_config
from holdthread.digressions.repository import (
    DigressionRepository,
    FileDigressionRepository,
    InMemoryDigressionRepository,
)
from holdthread.digressions.service import DigressionService
from holdthread.llm.client import ModelClient, build_model_clients
from holdthread.reasoning.phase import PhaseClassifierFactory, classifier_factory
from holdthread.reasoning.service import ReasoningService
from holdthread.sessions.locks import SessionLocks
from holdthread.sessions.repository import FileSessionRepository, InMemorySessionRepository, SessionRepository
from holdthread.turns.repository import InMemoryTurnRepository, TurnRepository

logger = logging.getLogger(__name__)


@dataclass
class ConversationRuntime:
    sessions: SessionRepository
    digressions: DigressionRepository
    turns: TurnRepository
    reasoning_client: ModelClient
    digression_client: ModelClient
    classifier: Optional[PhaseClassifierFactory] = None
    summary_messages: int = 6
    summary_chars: int = 100
    locks: SessionLocks = field(default_factory=SessionLocks)

    def __post_init__(self) -> None:
        self.reasoning = ReasoningService(
            self.sessions,
            self.turns,
            self.reasoning_client,
            classifier_factory=self.classifier,
            locks=self.locks,
        )
        self.digression = DigressionService(
            self.sessions,
            self.digressions,
            self.digression_client,
            locks=self.locks,
            summary_messages=self.summary_messages,
            summary_chars=self.summary_chars,
        )


def _default_stores() -> tuple[SessionRepository, DigressionRepository]:
    backend = runtime_config.get_store_backend()
    if backend == "file":
        base_dir = runtime_config.get_store_dir()
        return FileSessionRepository(base_dir), FileDigressionRepository(base_dir)
    return InMemorySessionRepository(), InMemoryDigressionRepository()


def build_runtime() -> ConversationRuntime:
    """Wire a runtime from environment configuration; raises ConfigurationError on bad settings."""
    sessions, digressions = _default_stores()
    reasoning_client, digression_client = build_model_clients()
    runtime = ConversationRuntime(
        sessions=sessions,
        digressions=digressions,
        turns=InMemoryTurnRepository(),
        reasoning_client=reasoning_client,
        digression_client=digression_client,
        classifier=classifier_factory(runtime_config.get_phase_classifier()),
        summary_messages=runtime_config.get_digression_summary_messages(),
        summary_chars=runtime_config.get_digression_summary_chars(),
    )
    logger.info(
        "Runtime ready: store=%s provider=%s classifier=%s",
        runtime_config.get_store_backend(),
        runtime_config.get_llm_provider(),
        runtime_config.get_phase_classifier(),
    )
    return runtime


def get_runtime(request: Request) -> ConversationRuntime:
    return request.app.state.runtime


def get_reasoning_service(request: Request) -> ReasoningService:
    return get_runtime(request).reasoning


def get_digression_service(request: Request) -> DigressionService:
    return get_runtime(request).digression
