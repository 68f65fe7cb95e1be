# chess_review/core/pgn_parser.py
"""
Recovers an ordered list of legal moves from arbitrary, possibly malformed
game-notation text.

Pasted game text is frequently damaged: copy-paste artifacts, smart
punctuation, invisible whitespace, zero-based castling, stray comments. This
module first normalizes the text, then tries a strict full-game load with
`python-chess`. If that fails it falls back to a token-by-token salvage that
applies every token it can and drops the rest. A move that cannot legally be
applied is always dropped, never guessed.
"""
import io
import re
from typing import List, Optional, Pattern, Tuple

import chess
import chess.pgn
import structlog

from chess_review.core.chess_utils import make_move_record
from chess_review.exceptions import PgnParsingError
from chess_review.types import MoveRecord, RecoveredGame

logger = structlog.get_logger(__name__)

# Character-level cleanup, applied first.
_CHARACTER_RULES: List[Tuple[Pattern[str], str]] = [
    (re.compile("[\u200b\u200c\u200d\u2060\ufeff]"), ""),  # BOM and zero-width characters
    (re.compile("[\u00a0\u202f]"), " "),  # non-breaking spaces
    (re.compile("[\u2010-\u2015\u2212]"), "-"),  # hyphen, dash and minus glyphs
    (re.compile("\u2026"), "..."),  # ellipsis
    (re.compile(r"\r\n?"), "\n"),
]

# Markup that carries no moves. Variations are handled separately because they nest.
_MARKUP_RULES: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"\[.*?\]\s*", re.DOTALL), ""),  # [Tag "value"] headers
    (re.compile(r"\{[^}]*\}"), " "),             # {comments}
    (re.compile(r";[^\n]*"), " "),               # ; rest-of-line comments
]

# Token-level rewrites, applied once headers and comments are gone.
_TOKEN_RULES: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"\$\d+"), " "),                         # numeric annotation glyphs
    (re.compile(r"\b[0oO]-[0oO]-[0oO]\b"), "O-O-O"),
    (re.compile(r"\b[0oO]-[0oO]\b"), "O-O"),
    (re.compile(r"(?<!\S)(?:1-0|0-1|1/2-1/2|\u00bd-\u00bd|\*)(?!\S)"), " "),
    (re.compile(r"(\d+)\.\.\."), r"\1."),                # "12..." -> "12."
    (re.compile(r"(?<!\S)\.{2,}(?!\S)"), " "),           # stray ellipsis tokens
]

_VARIATION_RE: Pattern[str] = re.compile(r"\([^()]*\)")
_WHITESPACE_RE: Pattern[str] = re.compile(r"\s+")

_MOVE_NUMBER_TOKEN_RE: Pattern[str] = re.compile(r"^\d+\.*$")
_INLINE_MOVE_NUMBER_RE: Pattern[str] = re.compile(r"^\d+\.+(?=\S)")
_RESULT_TOKEN_RE: Pattern[str] = re.compile("^(?:1-0|0-1|1/2-1/2|\u00bd-\u00bd|\\*)$")


def _strip_variations(text: str) -> str:
    """Removes parenthesized variations, innermost first, so nesting is handled."""
    previous = None
    while previous != text:
        previous = text
        text = _VARIATION_RE.sub(" ", text)
    return text


def normalize_movetext(raw: str) -> str:
    """
    Cleans a movetext blob into a single line of tokens.

    Args:
        raw: The text as pasted by the user, possibly with headers, comments,
             variations, annotation glyphs and smart punctuation.

    Returns:
        A whitespace-collapsed string of move numbers and moves.
    """
    if not raw:
        return ""
    text = str(raw)
    for pattern, replacement in _CHARACTER_RULES + _MARKUP_RULES:
        text = pattern.sub(replacement, text)
    text = _strip_variations(text)
    for pattern, replacement in _TOKEN_RULES:
        text = pattern.sub(replacement, text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def _load_strict(text: str) -> Optional[List[MoveRecord]]:
    """
    Loads the whole game with the python-chess PGN reader.

    Returns:
        The move list, or `None` if the reader reported any error, produced no
        moves, or produced a null move.
    """
    game = chess.pgn.read_game(io.StringIO(text))
    if game is None or game.errors:
        return None

    board = game.board()
    records: List[MoveRecord] = []
    for move in game.mainline_moves():
        if not move:
            return None
        records.append(make_move_record(board, move))
        board.push(move)
    return records or None


def _parse_token(board: chess.Board, token: str) -> Optional[chess.Move]:
    """Parses a single token as SAN, then as UCI. Returns `None` if neither is legal."""
    try:
        move = board.parse_san(token)
    except ValueError:
        try:
            move = board.parse_uci(token.lower())
        except ValueError:
            return None
    # Null moves ("--", "0000") are never part of a real game record.
    return move if move else None


def _salvage(text: str) -> RecoveredGame:
    """Applies the tokens one by one on a fresh board, skipping any that fail."""
    board = chess.Board()
    records: List[MoveRecord] = []
    skipped: List[str] = []

    for raw_token in text.split():
        if _MOVE_NUMBER_TOKEN_RE.match(raw_token):
            continue
        if _RESULT_TOKEN_RE.match(raw_token):
            break

        token = _INLINE_MOVE_NUMBER_RE.sub("", raw_token).rstrip("!?")
        if not token:
            continue

        move = _parse_token(board, token)
        if move is None:
            skipped.append(raw_token)
            continue

        records.append(make_move_record(board, move))
        board.push(move)

    return RecoveredGame(moves=records, strategy="salvage", skipped_tokens=skipped)


def recover_moves(raw: str) -> RecoveredGame:
    """
    Turns a movetext blob into an ordered list of legal moves from the start position.

    Args:
        raw: The game text. Headers are stripped, so games are always replayed
             from the standard starting position.

    Returns:
        A `RecoveredGame` naming the strategy that succeeded.

    Raises:
        PgnParsingError: If the input is empty or no legal move could be recovered.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise PgnParsingError("pgn (non-empty string) required")

    clean = normalize_movetext(raw)
    if not clean:
        raise PgnParsingError("Invalid PGN after normalize: nothing left to parse.")

    strict_moves = _load_strict(clean)
    if strict_moves is not None:
        logger.debug("Movetext loaded strictly.", num_moves=len(strict_moves))
        return RecoveredGame(moves=strict_moves, strategy="strict")

    recovered = _salvage(clean)
    if not recovered.moves:
        logger.warning("No legal moves could be recovered.", num_tokens=len(clean.split()))
        raise PgnParsingError("Invalid PGN after normalize: no legal moves could be recovered.")

    logger.info(
        "Movetext recovered by token salvage.",
        num_moves=len(recovered.moves), num_skipped=len(recovered.skipped_tokens)
    )
    return recovered
