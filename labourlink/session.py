"""Signed-in identity and the local directory of known users"""
import json
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .errors import MarketplaceError
from .logger import get_logger
from .models import Role, User

if TYPE_CHECKING:
    from .api_client import MarketplaceClient

logger = get_logger()


class Session:
    """The authenticated actor for one sign-in.

    Created by sign_in/sign_up and ended by sign_out. An ended session is
    treated as signed out by every policy check.
    """

    def __init__(self, user: User):
        self._user = user
        self.active = True

    @property
    def user(self) -> User:
        return self._user

    @property
    def actor_id(self) -> str:
        return self._user.id

    @property
    def role(self) -> Role:
        return self._user.role

    def refresh(self, user: User):
        """Replace the held user after a profile update"""
        if user.id != self._user.id:
            raise MarketplaceError(f"Session belongs to {self._user.id}, not {user.id}")
        if user.role != self._user.role:
            raise MarketplaceError("Role is fixed once an account is created")
        self._user = user

    def end(self):
        self.active = False

    def __repr__(self) -> str:
        state = "active" if self.active else "ended"
        return f"Session({self.actor_id}, {self.role.value}, {state})"


def signed_in(session: Optional[Session]) -> bool:
    return session is not None and session.active


async def sign_up(client: "MarketplaceClient", name: str, email: str, role: Role) -> Session:
    user = await client.create_user(name.strip(), email.strip(), role)
    logger.info(f"Signed up {user.name} ({user.role.value})")
    return Session(user)


async def sign_in(client: "MarketplaceClient", name: str, email: str) -> Session:
    user = await client.sign_in(name, email)
    logger.info(f"Signed in as {user.name} ({user.role.value})")
    return Session(user)


def sign_out(session: Optional[Session]):
    if session is not None and session.active:
        session.end()
        logger.info(f"Signed out {session.actor_id}")


class KnownUsers:
    """Users previously seen on this machine, kept in a JSON file"""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> list[User]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text())
            return [User.model_validate(item) for item in raw]
        except (ValueError, TypeError) as e:
            logger.warning(f"Ignoring unreadable known-users file {self.path}: {e}")
            return []

    def _save(self, users: list[User]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [u.model_dump(mode="json", by_alias=True, exclude_none=True) for u in users]
        self.path.write_text(json.dumps(payload, indent=2))

    def remember(self, user: User):
        """Insert or replace a user, matching by id and then by email"""
        users = self.load()
        email = user.email.lower()

        for i, known in enumerate(users):
            if known.id == user.id:
                users[i] = user
                break
        else:
            for i, known in enumerate(users):
                if known.email.lower() == email:
                    users[i] = user
                    break
            else:
                users.append(user)

        self._save(users)

    def find(self, name: str, email: str) -> Optional[User]:
        name = name.strip().lower()
        email = email.strip().lower()
        for user in self.load():
            if user.email.lower() == email and user.name.lower() == name:
                return user
        return None
