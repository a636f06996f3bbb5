# services/presence.py
"""
Présence des joueurs : battements de cœur côté client, balayage côté serveur.

Mécanisme de vivacité, pas de correction : un joueur qui rate quelques
battements mais revient avant le seuil reprend simplement sa place.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Set, Tuple

from sqlmodel import Session, select

import config
from errors import RoomNotFound
from models import Player, Room, as_utc

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    removed_players: List[Tuple[int, str]] = field(default_factory=list)
    changed_rooms: Set[int] = field(default_factory=set)
    deleted_rooms: Set[int] = field(default_factory=set)


def heartbeat(store, room_id: int, identifier: str):
    try:
        with store.mutate(room_id) as (s, r):
            p = store.find_player(s, r.id, identifier)
            if p is None:
                return
            p.last_seen_at = store.clock()
            s.add(p)
            logger.debug("room %s: heartbeat from %s", r.code, identifier)
    except RoomNotFound:
        return


def sweep(store, now=None) -> SweepReport:
    """
    Une passe de nettoyage :
    - retire les joueurs silencieux depuis INACTIVITY_TIMEOUT_SEC
      (même règle qu'un départ : transfert d'hôte, suppression si vide) ;
    - supprime toute room plus vieille que ROOM_MAX_AGE_SEC.
    """
    now = now or store.clock()
    stale_cutoff = now - timedelta(seconds=config.INACTIVITY_TIMEOUT_SEC)
    age_cutoff = now - timedelta(seconds=config.ROOM_MAX_AGE_SEC)
    report = SweepReport()

    with Session(store.engine) as s:
        rooms = s.exec(select(Room)).all()
        too_old = {r.id for r in rooms if as_utc(r.created_at) < age_cutoff}
        stale_rooms = {p.room_id for p in s.exec(select(Player)).all()
                       if as_utc(p.last_seen_at) < stale_cutoff}

    for room_id in sorted(too_old):
        store.delete_room(room_id)
        report.deleted_rooms.add(room_id)

    for room_id in sorted(stale_rooms - too_old):
        deleted = False
        try:
            with store.mutate(room_id) as (s, r):
                # relu sous verrou : un battement a pu arriver entre-temps
                for p in store.players_of(s, r.id):
                    if as_utc(p.last_seen_at) >= stale_cutoff:
                        continue
                    report.removed_players.append((room_id, p.identifier))
                    if store.drop_player(s, r, p):
                        deleted = True
                        break
        except RoomNotFound:
            continue
        if deleted:
            store.delete_room(room_id)
            report.deleted_rooms.add(room_id)
        else:
            report.changed_rooms.add(room_id)

    if report.removed_players or report.deleted_rooms:
        logger.info("presence sweep: %d players removed, %d rooms deleted",
                    len(report.removed_players), len(report.deleted_rooms))
    return report
