from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

ROLE_ANALYST = "analyst"
ROLE_DECODER = "decoder"
ROLE_FIELD_AGENT = "fieldAgent"

def normalize_answer(s: str) -> str:
    return (s or "").strip().upper()

@dataclass(frozen=True)
class MissionBrief:
    title: str
    objective: str
    context: str

@dataclass(frozen=True)
class DocumentInfo:
    type: str
    id: str
    status: str

@dataclass(frozen=True)
class RoleSheet:
    """Ce qu'un rôle voit d'une énigme."""
    title: str
    description: str
    data: List[str] = field(default_factory=list)

@dataclass(frozen=True)
class Prompt:
    """Énoncé d'une énigme ; `kind` et `cipher` étiquettent chaque variante."""
    kind: ClassVar[str] = ""
    cipher: ClassVar[str] = ""

    title: str
    instruction: str

    def lines(self) -> List[str]:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "title": self.title,
            "instruction": self.instruction,
            "data": self.lines(),
            "cipher": self.cipher,
        }

class Puzzle(ABC):
    answer: str = ""
    hints: List[str] = []
    mission: MissionBrief
    document: DocumentInfo

    @abstractmethod
    def get_prompt(self) -> Prompt:
        ...

    @abstractmethod
    def role_sheets(self) -> Dict[str, RoleSheet]:
        ...

    def validate(self, answer: str) -> bool:
        return normalize_answer(answer) == normalize_answer(self.answer)

    def role_view(self, role: str, player_count: int) -> Optional[Dict[str, Any]]:
        """
        Vue d'un rôle : seul l'agent de terrain peut soumettre. À deux joueurs
        il n'y a pas de décodeur, l'agent reçoit donc aussi sa fiche.
        """
        sheets = self.role_sheets()
        sheet = sheets.get(role)
        if sheet is None:
            return None
        view = {
            "missionBrief": asdict(self.mission),
            "documentInfo": asdict(self.document),
            "role": role,
            "title": sheet.title,
            "description": sheet.description,
            "canSubmit": role == ROLE_FIELD_AGENT,
        }
        if role != ROLE_FIELD_AGENT:
            view["data"] = list(sheet.data)
        elif player_count == 2:
            view["decoderData"] = asdict(sheets[ROLE_DECODER])
        return view
