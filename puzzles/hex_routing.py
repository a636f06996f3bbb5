import os
import string
from dataclasses import dataclass
from typing import ClassVar, Dict, List

from .base import (
    ROLE_ANALYST, ROLE_DECODER, ROLE_FIELD_AGENT,
    DocumentInfo, MissionBrief, Prompt, Puzzle, RoleSheet,
)
from .ciphers import hex_encode

@dataclass(frozen=True)
class WireTransferPrompt(Prompt):
    kind: ClassVar[str] = "wire_transfer"
    cipher: ClassVar[str] = "hex"

    amount: str
    purpose: str
    location_code: str
    swift: str
    account_ref: str

    def lines(self) -> List[str]:
        return [
            f"Amount: {self.amount}",
            f"Purpose: {self.purpose}",
            f"Location Code: {self.location_code}",
            f"Bank SWIFT: {self.swift}",
            f"Account Ref: {self.account_ref}",
        ]

def _hex_table() -> List[str]:
    letters = string.ascii_uppercase
    return ["  ".join(f"{ord(c):02X}={c}" for c in letters[i:i + 5]) for i in range(0, 26, 5)]

class HexRoutingPuzzle(Puzzle):
    """
    Énigme 1 : Virement intercepté.
    Le code de destination est en hexadécimal : 43 41 59 4D 41 4E -> CAYMAN.
    """
    mission = MissionBrief(
        title="WIRE TRANSFER INTERCEPT",
        objective="Decode the destination location of the suspicious wire transfer",
        context="We've intercepted a $50,000 wire transfer from the Vance Foundation marked as "
                "'Aircraft Purchase Deposit'. The destination routing codes are encrypted in hexadecimal.",
    )
    document = DocumentInfo(type="Wire Transfer Record", id="WIR-2024-0315-7829", status="INTERCEPTED")

    def __init__(self):
        self.answer = os.getenv("PUZZLE_0_ANSWER", "CAYMAN")
        self.hints = [
            "Each pair of characters represents a hexadecimal value",
            "Convert hex to decimal, then decimal to ASCII characters",
            "The routing leads to a Caribbean island known for offshore banking",
        ]

    def get_prompt(self) -> WireTransferPrompt:
        return WireTransferPrompt(
            title="Wire Transfer Intercept",
            instruction="Decode the destination location of the suspicious wire transfer.",
            amount="$50,000.00 USD",
            purpose="Aircraft Purchase Deposit",
            location_code=hex_encode(self.answer),
            swift=hex_encode("OCEAN"),
            account_ref=hex_encode("VANCE"),
        )

    def role_sheets(self) -> Dict[str, RoleSheet]:
        return {
            ROLE_ANALYST: RoleSheet(
                title="Intercepted Routing Data",
                description="You have the encrypted routing codes. Share these hex values with your Decoder.",
                data=["━━━ WIRE TRANSFER DETAILS ━━━", *self.get_prompt().lines()],
            ),
            ROLE_DECODER: RoleSheet(
                title="Cryptography Reference",
                description="You have the hex-to-ASCII table. Help your Analyst decode the routing data.",
                data=["━━━ HEX TO ASCII TABLE ━━━", *_hex_table(), "Decode each hex pair to find the letter"],
            ),
            ROLE_FIELD_AGENT: RoleSheet(
                title="Submit Decoded Location",
                description="Coordinate with your team. Once they decode the Location Code, enter the destination.",
            ),
        }
