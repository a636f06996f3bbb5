import os
from dataclasses import dataclass
from typing import ClassVar, Dict, List

from .base import (
    ROLE_ANALYST, ROLE_DECODER, ROLE_FIELD_AGENT,
    DocumentInfo, MissionBrief, Prompt, Puzzle, RoleSheet,
)
from .ciphers import base64_encode

@dataclass(frozen=True)
class TransactionPrompt(Prompt):
    kind: ClassVar[str] = "transaction_record"
    cipher: ClassVar[str] = "base64"

    txn_id: str
    amount: str
    txn_type: str
    description: str

    def lines(self) -> List[str]:
        return [
            f"TXN ID: {self.txn_id}",
            f"Amount: {self.amount}",
            f"Type: {self.txn_type}",
            f"Description: {self.description}",
        ]

class Base64TransactionPuzzle(Puzzle):
    """
    Énigme 2 : Transaction signalée TXN-78291.
    Description encodée en base64 : format MOT-NOMBRE-MOT.
    """
    mission = MissionBrief(
        title="TRANSACTION ANALYSIS",
        objective="Decode the flagged transaction description to reveal fund movements",
        context="Bank compliance flagged transaction TXN-78291. The description was encoded to hide "
                "what this $50,000 outbound transfer was really for.",
    )
    document = DocumentInfo(type="Transaction Record", id="TXN-78291", status="FLAGGED")

    def __init__(self):
        self.answer = os.getenv("PUZZLE_1_ANSWER", "DONATION-50000-AIRCRAFT")
        self.hints = [
            "Base64 uses A-Z, a-z, 0-9, +, and / characters",
            "Try an online Base64 decoder",
            "The decoded text reveals a transaction type, amount, and purpose",
        ]

    def get_prompt(self) -> TransactionPrompt:
        return TransactionPrompt(
            title="Transaction Analysis",
            instruction="Decode the flagged transaction description (format: WORD-NUMBER-WORD).",
            txn_id=self.document.id,
            amount="$50,000.00",
            txn_type="Outbound Wire",
            description=base64_encode(self.answer),
        )

    def role_sheets(self) -> Dict[str, RoleSheet]:
        return {
            ROLE_ANALYST: RoleSheet(
                title="Flagged Transaction Data",
                description="The description is Base64 encoded. Share it with your Decoder.",
                data=["━━━ TRANSACTION RECORD ━━━", *self.get_prompt().lines()],
            ),
            ROLE_DECODER: RoleSheet(
                title="Base64 Decoder Tool",
                description="You can decode Base64. Help your Analyst read the transaction description.",
                data=[
                    "━━━ BASE64 REFERENCE ━━━",
                    "A-Z = values 0-25",
                    "a-z = values 26-51",
                    "0-9 = values 52-61",
                    "+ = 62, / = 63",
                    "= is padding",
                    "Decode 4 chars -> 3 ASCII chars",
                ],
            ),
            ROLE_FIELD_AGENT: RoleSheet(
                title="Submit Transaction Description",
                description="Enter the full decoded description (format: WORD-NUMBER-WORD) when ready.",
            ),
        }
