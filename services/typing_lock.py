# services/typing_lock.py
"""
Verrou de saisie consultatif : un seul joueur tape dans un champ partagé.

Un seul verrou par room. Il expire de lui-même après TYPING_LOCK_TTL_SEC ;
le détenteur le renouvelle en le réclamant à nouveau (toutes les 2 s).
Rien n'empêche un client d'écrire sans le verrou : c'est une courtoisie,
pas une barrière de sécurité.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict

import config
from models import as_utc

logger = logging.getLogger(__name__)


def _expired(claimed_at, now) -> bool:
    if claimed_at is None:
        return True
    return now - as_utc(claimed_at) >= timedelta(seconds=config.TYPING_LOCK_TTL_SEC)


def claim(store, room_id: int, identifier: str, label: str, field_index: int) -> Dict[str, Any]:
    """
    Réclame (ou renouvelle) le verrou. `locked: False` signifie que la
    réclamation a réussi ; `locked: True` qu'un autre joueur le détient.
    """
    with store.mutate(room_id) as (s, r):
        now = store.clock()
        holder = r.typing_holder_id
        if holder and holder != identifier and not _expired(r.typing_claimed_at, now):
            logger.debug("room %s: typing lock denied to %s (held by %s)", r.code, identifier, holder)
            return {
                "locked": True,
                "holder": {
                    "holderId": holder,
                    "holderLabel": r.typing_holder_label,
                    "fieldIndex": r.typing_field_index,
                },
            }
        r.typing_holder_id = identifier
        r.typing_holder_label = label or identifier
        r.typing_field_index = field_index
        r.typing_claimed_at = now
        s.add(r)
        logger.debug("room %s: typing lock held by %s on field %s", r.code, identifier, field_index)
        return {"locked": False}


def release(store, room_id: int, identifier: str):
    """Libère le verrou seulement si `identifier` le détient encore."""
    with store.mutate(room_id) as (s, r):
        if r.typing_holder_id != identifier:
            return
        r.clear_typing_lock()
        s.add(r)
