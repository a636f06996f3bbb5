import os
import string
from dataclasses import dataclass
from typing import ClassVar, Dict, List

from .base import (
    ROLE_ANALYST, ROLE_DECODER, ROLE_FIELD_AGENT,
    DocumentInfo, MissionBrief, Prompt, Puzzle, RoleSheet,
)
from .ciphers import binary_encode

@dataclass(frozen=True)
class BinaryFilePrompt(Prompt):
    kind: ClassVar[str] = "binary_file"
    cipher: ClassVar[str] = "binary"

    filename: str
    file_lines: List[str]

    def lines(self) -> List[str]:
        return [f"Filename: {self.filename}"] + [
            f"LINE {i:02d}: {line}" for i, line in enumerate(self.file_lines, start=1)
        ]

class BinaryAssetPuzzle(Puzzle):
    """
    Énigme 3 : Fichier caché secret_asset.bin.
    Seule la LIGNE 01 compte : 5 octets -> PLANE.
    """
    mission = MissionBrief(
        title="HIDDEN FILE DISCOVERY",
        objective="Decode the hidden file to identify the asset purchased with offshore funds",
        context="Forensic analysis of the Vance family's server revealed a hidden binary file. "
                "Decode LINE 01 to identify what was purchased with the laundered funds.",
    )
    document = DocumentInfo(type="Encrypted File", id="secret_asset.bin", status="RECOVERED")

    def __init__(self):
        self.answer = os.getenv("PUZZLE_2_ANSWER", "PLANE")
        self.hints = [
            "Each group of 8 digits represents one character",
            "In binary, 01000001 = 65 = 'A' in ASCII",
            "Convert each 8-bit sequence to get a 5-letter word",
        ]

    def get_prompt(self) -> BinaryFilePrompt:
        return BinaryFilePrompt(
            title="Hidden File Discovery",
            instruction="Decode LINE 01 to identify the asset purchased with offshore funds.",
            filename=self.document.id,
            file_lines=[binary_encode(self.answer), binary_encode("REGISTRY"), binary_encode("N738VN")],
        )

    def role_sheets(self) -> Dict[str, RoleSheet]:
        letters = string.ascii_uppercase
        chart = ["  ".join(f"{binary_encode(c)}={c}" for c in letters[i:i + 3]) for i in range(0, 26, 3)]
        return {
            ROLE_ANALYST: RoleSheet(
                title="Hidden File Contents",
                description="You extracted this binary file. Share the binary data with your Decoder.",
                data=["━━━ BINARY CONTENTS ━━━", *self.get_prompt().lines()],
            ),
            ROLE_DECODER: RoleSheet(
                title="Binary Conversion Chart",
                description="Help decode LINE 01: each 8-bit group equals one character.",
                data=["━━━ BINARY TO ASCII ━━━", *chart, "Example: 01000001 = 65 = 'A'"],
            ),
            ROLE_FIELD_AGENT: RoleSheet(
                title="Submit Decoded Asset",
                description="Focus on LINE 01. Enter the decoded word once your team has it.",
            ),
        }
