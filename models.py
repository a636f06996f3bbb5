from typing import Dict, List, Optional
from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import SQLModel, Field
from datetime import datetime, timezone

PHASE_WAITING = "waiting"
PHASE_PLAYING = "playing"
PHASE_VICTORY = "victory"

def utcnow():
    return datetime.now(timezone.utc)

def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite rend des datetimes naïfs : on les normalise en UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt

class Room(SQLModel, table=True):
    # ids jamais réutilisés
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(index=True, unique=True)
    host_id: str
    created_at: datetime = Field(default_factory=utcnow, index=True)

    # Partie / progression
    phase: str = PHASE_WAITING
    start_time: Optional[datetime] = None
    current_puzzle: int = 0
    solved_puzzles: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    shared_inputs: Dict[str, str] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    is_locked: bool = False

    # Verrou de saisie (un seul par room)
    typing_holder_id: Optional[str] = None
    typing_holder_label: Optional[str] = None
    typing_field_index: Optional[int] = None
    typing_claimed_at: Optional[datetime] = None

    # Victoire (écrits une seule fois)
    final_passcode: Optional[str] = None
    completion_time_ms: Optional[int] = None

    def clear_typing_lock(self):
        self.typing_holder_id = None
        self.typing_holder_label = None
        self.typing_field_index = None
        self.typing_claimed_at = None

class Player(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("room_id", "identifier"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    room_id: int = Field(index=True, foreign_key="room.id")
    identifier: str = Field(index=True)   # id stable par navigateur
    nickname: str
    is_host: bool = False
    is_ready: bool = True
    role: Optional[str] = None            # attribué au lancement de la partie
    joined_at: datetime = Field(default_factory=utcnow)
    last_seen_at: datetime = Field(default_factory=utcnow, index=True)

class ChatMessage(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    room_id: int = Field(index=True, foreign_key="room.id")
    player_id: str
    player_name: str
    message: str
    timestamp: datetime = Field(default_factory=utcnow)
