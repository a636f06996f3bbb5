# services/game_state.py
from __future__ import annotations
from typing import Any, Dict, List, Optional

import config
from puzzles.base import ROLE_ANALYST, ROLE_DECODER, ROLE_FIELD_AGENT, Prompt, Puzzle, normalize_answer
from puzzles.hex_routing import HexRoutingPuzzle
from puzzles.base64_transaction import Base64TransactionPuzzle
from puzzles.binary_asset import BinaryAssetPuzzle

# ========================
# Routage des 3 énigmes
# ========================
PUZZLES: List[Puzzle] = [
    HexRoutingPuzzle(),
    Base64TransactionPuzzle(),
    BinaryAssetPuzzle(),
]

def total_puzzles() -> int:
    return len(PUZZLES)

def is_valid_index(i: Any) -> bool:
    return isinstance(i, int) and not isinstance(i, bool) and 0 <= i < total_puzzles()

def get_prompt(i: int) -> Prompt:
    return PUZZLES[i].get_prompt()

def validate_answer(i: int, answer: str) -> bool:
    return PUZZLES[i].validate(answer)

def get_hint(index: int, used: int) -> Optional[str]:
    hints = PUZZLES[index].hints
    return hints[used] if 0 <= used < len(hints) else None

def check_entry_passcode(passcode: str) -> bool:
    return normalize_answer(passcode) == config.ENTRY_PASSCODE

def shared_input_key(i: int) -> str:
    return f"puzzle{i}_answer"

# ========================
# Rôles
# ========================
def assign_roles(player_count: int) -> List[str]:
    """
    Un seul agent de terrain ; les autres se partagent analystes et décodeurs,
    les analystes d'abord : 2 -> A+F, 3 -> A+D+F, 4 -> 2A+D+F, 6 -> 3A+2D+F.
    """
    others = max(player_count - 1, 0)
    decoders = others // 2
    return [ROLE_ANALYST] * (others - decoders) + [ROLE_DECODER] * decoders + [ROLE_FIELD_AGENT]

def get_role_puzzle_data(index: int, role: str, player_count: int) -> Optional[Dict[str, Any]]:
    return PUZZLES[index].role_view(role, player_count)
