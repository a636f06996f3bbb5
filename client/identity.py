import logging
import uuid

from client.session import ClientSession, SessionStorage

logger = logging.getLogger(__name__)


def new_identifier() -> str:
    return str(uuid.uuid4())


def load_or_create_session(storage: SessionStorage) -> ClientSession:
    """Identifiant stable par profil : créé une seule fois puis relu à chaque démarrage."""
    session = storage.load()
    if session is None:
        session = ClientSession(identifier=new_identifier())
        storage.save(session)
        logger.info("new participant identifier %s", session.identifier)
    return session
