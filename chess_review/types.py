# chess_review/types.py
"""
A central module for shared data structures and service interfaces (Protocols).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import (Any, Dict, List, Literal, Optional, Protocol, TypeAlias,
                    runtime_checkable)

FEN: TypeAlias = str
UCI: TypeAlias = str
Side: TypeAlias = Literal["white", "black"]

class Verdict(str, Enum):
    OKAY = "Okay"; INACCURACY = "Inaccuracy"; MISTAKE = "Mistake"; BLUNDER = "Blunder"

# --- PARSING AND REPLAY ---

@dataclass(frozen=True, slots=True)
class MoveRecord:
    """One ply, in both human (SAN) and coordinate (UCI) form."""
    from_square: str; to_square: str; promotion: Optional[str]
    san: str; uci: UCI

@dataclass(frozen=True, slots=True)
class RecoveredGame:
    moves: List[MoveRecord]
    strategy: Literal["strict", "salvage"]
    skipped_tokens: List[str] = field(default_factory=list)

@dataclass(frozen=True, slots=True)
class PlySlice:
    ply: int; side: Side; move: MoveRecord; fen_before: FEN; fen_after: FEN

# --- ENGINE CONTRACTS ---

@dataclass(frozen=True, slots=True)
class EngineScore:
    """A score from the side-to-move perspective: a centipawn value or a mate distance."""
    kind: Literal["cp", "mate"]; value: int

@dataclass(frozen=True, slots=True)
class CandidateLine:
    rank: int; depth: int; score: EngineScore; pv: List[UCI]

@dataclass(frozen=True, slots=True)
class EvaluationResult:
    best_move: Optional[UCI]
    candidates: List[CandidateLine]

    @property
    def top_score(self) -> Optional[EngineScore]:
        return self.candidates[0].score if self.candidates else None

@dataclass(frozen=True, slots=True)
class CacheKey:
    fen: FEN; depth: int; multipv: int; movetime_ms: int

@dataclass(frozen=True, slots=True)
class EvaluationRequest:
    fen: FEN; depth: int; multipv: int; movetime_ms: Optional[int] = None

    @property
    def cache_key(self) -> CacheKey:
        return CacheKey(fen=self.fen, depth=self.depth, multipv=self.multipv,
                        movetime_ms=self.movetime_ms or 0)

# --- REPORT CONTRACTS ---

@dataclass(frozen=True, slots=True)
class CoachNote:
    note: Optional[str] = None; better: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.note is None and self.better is None

@dataclass(frozen=True, slots=True)
class AnalysisOptions:
    depth: int = 16; multipv: int = 3; movetime_ms: Optional[int] = None
    with_coach: bool = False

@dataclass(frozen=True, slots=True)
class AnalyzedMove:
    ply: int; side: Side; san: str; uci: UCI
    fen_before: FEN; fen_after: FEN; best_move: Optional[UCI]
    eval_best_cp: int; eval_human_cp: int; delta_cp: int; verdict: Verdict
    note: Optional[str] = None; better: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serializes the row using the wire keys consumed by the board UI."""
        row: Dict[str, Any] = {
            "ply": self.ply, "side": self.side, "san": self.san, "uci": self.uci,
            "fenBefore": self.fen_before, "fenAfter": self.fen_after,
            "bestmove": self.best_move, "evalBestCp": self.eval_best_cp,
            "evalHumanCp": self.eval_human_cp, "deltaCp": self.delta_cp,
            "verdict": self.verdict.value,
        }
        if self.note is not None:
            row["note"] = self.note
        if self.better is not None:
            row["better"] = self.better
        return row

@dataclass(frozen=True, slots=True)
class VerdictSummary:
    inaccuracies: int = 0; mistakes: int = 0; blunders: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"inaccuracies": self.inaccuracies, "mistakes": self.mistakes, "blunders": self.blunders}

@dataclass(frozen=True)
class GameReport:
    moves: List[AnalyzedMove]
    summary: VerdictSummary

    def to_dict(self) -> Dict[str, Any]:
        return {"moves": [m.to_dict() for m in self.moves], "summary": self.summary.to_dict()}


# --- PROTOCOLS: Abstract Interfaces for Services ---
# These define the "contracts" that concrete service implementations must adhere to.
# They enable dependency inversion and allow for easy mocking in tests.

@runtime_checkable
class EngineSession(Protocol):
    """A stateful engine oracle that serves exactly one evaluation at a time."""
    async def start(self) -> None: ...
    async def evaluate(self, request: EvaluationRequest) -> EvaluationResult: ...
    async def close(self) -> None: ...

@runtime_checkable
class CacheService(Protocol):
    """Defines the abstract interface for a persistent evaluation cache tier."""
    async def get_cached_analysis(self, key: CacheKey) -> Optional[EvaluationResult]: ...
    async def store_analysis(self, key: CacheKey, result: EvaluationResult) -> None: ...

@runtime_checkable
class TextGenerator(Protocol):
    """A text-generation oracle that answers a single prompt with free text."""
    async def generate(self, prompt: str) -> str: ...

@runtime_checkable
class Coach(Protocol):
    """Produces a best-effort explanation for a weak move. Never raises."""
    async def explain(
        self, san: str, eval_before_cp: int, eval_after_cp: int, delta_cp: int, verdict: Verdict
    ) -> CoachNote: ...
