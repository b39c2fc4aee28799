"""Reasoning/answer phase classification of streamed model fragments.

Classifiers are stateful and single-use: build one per turn. Whatever the
strategy, phases only move forward (reasoning -> answer, never back), every
non-empty fragment comes out exactly once, and the transition marker is emitted
exactly once per turn.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Protocol, Sequence

from pydantic import BaseModel

from holdthread.llm.client import FragmentCategory, ModelFragment

DEFAULT_REASONING_MARKERS: tuple[str, ...] = ("Let me", "I need to", "Analyzing")


class Phase(str, Enum):
    reasoning = "reasoning"
    answer = "answer"


class ClassifiedFragment(BaseModel):
    phase: Phase
    text: str = ""
    transition: bool = False


class PhaseClassifier(Protocol):
    def feed(self, fragment: ModelFragment) -> List[ClassifiedFragment]: ...

    def finish(self) -> List[ClassifiedFragment]: ...


PhaseClassifierFactory = Callable[[], PhaseClassifier]


class _MonotonicClassifier(ABC):
    def __init__(self, markers: Sequence[str] = DEFAULT_REASONING_MARKERS) -> None:
        self.markers = tuple(markers)
        self.in_reasoning_phase = True
        self._transition_emitted = False

    def _looks_like_reasoning(self, text: str) -> bool:
        return any(marker in text for marker in self.markers)

    @abstractmethod
    def _stays_reasoning(self, fragment: ModelFragment) -> bool: ...

    def _flip(self) -> List[ClassifiedFragment]:
        self.in_reasoning_phase = False
        if self._transition_emitted:
            return []
        self._transition_emitted = True
        return [ClassifiedFragment(phase=Phase.answer, transition=True)]

    def feed(self, fragment: ModelFragment) -> List[ClassifiedFragment]:
        out: List[ClassifiedFragment] = []
        if fragment.text:
            if self.in_reasoning_phase and not self._stays_reasoning(fragment):
                out.extend(self._flip())
            phase = Phase.reasoning if self.in_reasoning_phase else Phase.answer
            out.append(ClassifiedFragment(phase=phase, text=fragment.text))
        if fragment.finish_reason:
            out.extend(self.finish())
        return out

    def finish(self) -> List[ClassifiedFragment]:
        """Terminal signal: a turn that never produced a recognisable answer is forced over."""
        if self.in_reasoning_phase:
            return self._flip()
        return []


class LexicalPhaseClassifier(_MonotonicClassifier):
    """Heuristic classifier.

    Stays in reasoning while fragments contain a "still reasoning" marker and
    the provider has not tagged them as answer. Known accuracy limitation:
    answer text that happens to contain "Let me" keeps the turn in reasoning,
    and reasoning text without a marker ends it early.
    """

    def _stays_reasoning(self, fragment: ModelFragment) -> bool:
        if fragment.category == FragmentCategory.answer:
            return False
        return self._looks_like_reasoning(fragment.text)


class TaggedPhaseClassifier(_MonotonicClassifier):
    """Trusts provider tags; only untyped fragments fall back to the lexical markers."""

    def _stays_reasoning(self, fragment: ModelFragment) -> bool:
        if fragment.category == FragmentCategory.reasoning:
            return True
        if fragment.category == FragmentCategory.answer:
            return False
        return self._looks_like_reasoning(fragment.text)


def classifier_factory(name: str, markers: Sequence[str] = DEFAULT_REASONING_MARKERS) -> PhaseClassifierFactory:
    if name == "tagged":
        return lambda: TaggedPhaseClassifier(markers)
    if name == "lexical":
        return lambda: LexicalPhaseClassifier(markers)
    raise ValueError(f"Unknown phase classifier: {name}")
