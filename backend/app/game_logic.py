from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Set, Tuple
import threading
import time


class Role(Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"
    F = "F"


# Catalog order is the assignment order for fresh registrations
ROLE_ORDER: List[Role] = list(Role)
HUB_ROLE = Role.B
ANSWER_ROLE = Role.C


def parse_role(value) -> Optional[Role]:
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except (ValueError, TypeError):
        return None


def can_message(from_role: Role, to_role: Optional[Role]) -> bool:
    """Peripheral roles may only talk to the hub; the hub may talk to anyone else."""
    if to_role is None:
        return False
    if from_role == HUB_ROLE:
        return to_role != HUB_ROLE
    return to_role == HUB_ROLE


class GameError(Exception):
    code = "GameError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_ack(self) -> dict:
        return {'ok': False, 'error': self.message, 'code': self.code}


class InvalidInput(GameError):
    code = "InvalidInput"


class RolesExhausted(GameError):
    code = "RolesExhausted"


class RoleOccupied(GameError):
    code = "RoleOccupied"


class Unauthorized(GameError):
    code = "Unauthorized"


class DirectionForbidden(GameError):
    code = "DirectionForbidden"


class Forbidden(GameError):
    code = "Forbidden"


class RecipientNotFound(GameError):
    code = "RecipientNotFound"


class Participant:
    def __init__(self, sid: str, name: str, role: Role, group: int):
        self.sid = sid
        self.name = name
        self.role = role
        self.group = group

    @property
    def card_image(self) -> str:
        return f"/cards/{self.role.value}.jpg"

    def to_dict(self):
        return {
            'name': self.name,
            'role': self.role.value,
            'group': self.group
        }

    def to_ack(self):
        return {
            'ok': True,
            'role': self.role.value,
            'name': self.name,
            'group': self.group
        }

    def __repr__(self):
        return f"Participant(sid={self.sid!r}, name={self.name!r}, role={self.role.value}, group={self.group})"


class Event(NamedTuple):
    """A push to a single connection, emitted by the transport after the call returns."""
    to: str
    name: str
    payload: object


class GroupRegistry:
    """Occupancy table: at most one connection per (group, role)."""

    def __init__(self):
        self._slots: Dict[int, Dict[Role, str]] = {}
        self._owned: Dict[str, Tuple[int, Role]] = {}
        self._lock = threading.RLock()

    def claim(self, group: int, role: Role, sid: str) -> bool:
        """Bind (group, role) to sid unless another connection holds it.

        A connection owns at most one slot, so claiming a new slot drops the
        previous one.
        """
        with self._lock:
            holder = self._slots.get(group, {}).get(role)
            if holder is not None and holder != sid:
                return False
            if self._owned.get(sid) != (group, role):
                self.release(sid)
            self._slots.setdefault(group, {})[role] = sid
            self._owned[sid] = (group, role)
            return True

    def release(self, sid: str) -> Optional[Tuple[int, Role]]:
        with self._lock:
            slot = self._owned.pop(sid, None)
            if slot is None:
                return None
            group, role = slot
            roles = self._slots.get(group)
            if roles is not None and roles.get(role) == sid:
                del roles[role]
                if not roles:
                    del self._slots[group]
            return slot

    def occupants_of(self, group: int) -> Set[Role]:
        with self._lock:
            return set(self._slots.get(group, {}))

    def find(self, group: int, role: Role) -> Optional[str]:
        with self._lock:
            return self._slots.get(group, {}).get(role)

    def members(self, group: int) -> List[str]:
        """Connections bound to a group, in catalog role order."""
        with self._lock:
            roles = self._slots.get(group, {})
            return [roles[r] for r in ROLE_ORDER if r in roles]

    def slot_of(self, sid: str) -> Optional[Tuple[int, Role]]:
        with self._lock:
            return self._owned.get(sid)


class SessionStore:
    def __init__(self):
        self._participants: Dict[str, Participant] = {}
        self._lock = threading.RLock()

    def insert(self, participant: Participant):
        with self._lock:
            self._participants[participant.sid] = participant

    def get(self, sid: str) -> Optional[Participant]:
        with self._lock:
            return self._participants.get(sid)

    def remove(self, sid: str) -> Optional[Participant]:
        with self._lock:
            return self._participants.pop(sid, None)

    def __contains__(self, sid):
        with self._lock:
            return sid in self._participants

    def __len__(self):
        with self._lock:
            return len(self._participants)


class GameManager:
    def __init__(self, groups: int = 1, registry: Optional[GroupRegistry] = None,
                 sessions: Optional[SessionStore] = None, clock=None):
        self.groups = groups
        self.registry = registry if registry is not None else GroupRegistry()
        self.sessions = sessions if sessions is not None else SessionStore()
        # epoch milliseconds, matching the client's timestamp handling
        self._clock = clock or (lambda: int(time.time() * 1000))
        # claim/bind/release sequences across registry and sessions
        self._lock = threading.RLock()

    # --- input validation ---

    def parse_group(self, value, default: Optional[int] = None) -> int:
        if value is None or value == "":
            if default is None:
                raise InvalidInput("Group is required")
            return default
        if isinstance(value, bool):
            raise InvalidInput("Group must be a number")
        # int() would truncate 2.5 to 2
        if isinstance(value, float) and not value.is_integer():
            raise InvalidInput("Group must be a whole number")
        try:
            group = int(value)
        except (TypeError, ValueError):
            raise InvalidInput("Group must be a number")
        if group < 1 or group > self.groups:
            raise InvalidInput(f"Group must be between 1 and {self.groups}")
        return group

    @staticmethod
    def _clean_name(name) -> str:
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput("Name is required")
        return name.strip()

    # --- registration ---

    def assign_role_for_group(self, group: int, sid: Optional[str] = None) -> Optional[Role]:
        """First catalog role that no other connection holds in the group."""
        for role in ROLE_ORDER:
            holder = self.registry.find(group, role)
            if holder is None or holder == sid:
                return role
        return None

    def register(self, sid: str, name, group) -> Tuple[Participant, List[Event]]:
        name = self._clean_name(name)
        group = self.parse_group(group, default=1)
        with self._lock:
            role = self.assign_role_for_group(group, sid)
            if role is None:
                raise RolesExhausted("All roles in this group are taken")
            return self._bind(sid, name, role, group)

    def reconnect_user(self, sid: str, name, role, group) -> Tuple[Participant, List[Event]]:
        if not name or not role or not group:
            raise InvalidInput("Name, role and group are required")
        name = self._clean_name(name)
        group = self.parse_group(group)
        resumed = parse_role(role)
        if resumed is None:
            raise InvalidInput(f"Unknown role: {role}")
        with self._lock:
            holder = self.registry.find(group, resumed)
            if holder is not None and holder != sid:
                raise RoleOccupied("Role is already taken")
            return self._bind(sid, name, resumed, group)

    def _bind(self, sid: str, name: str, role: Role, group: int) -> Tuple[Participant, List[Event]]:
        events: List[Event] = []
        previous = self.sessions.remove(sid)
        self.registry.release(sid)
        if previous is not None and previous.group != group:
            events.extend(self._roster_events(previous.group))

        if not self.registry.claim(group, role, sid):
            # only reachable if a caller bypassed the manager lock
            if previous is not None:
                self.registry.claim(previous.group, previous.role, sid)
                self.sessions.insert(previous)
            raise RoleOccupied("Role is already taken")
        participant = Participant(sid, name, role, group)
        self.sessions.insert(participant)

        events.append(Event(sid, 'registered', participant.to_ack()))
        events.append(Event(sid, 'card', {'role': role.value, 'image': participant.card_image}))
        events.extend(self._roster_events(group))
        return participant, events

    # --- messaging ---

    def send_message(self, sid: str, to_role, text) -> List[Event]:
        with self._lock:
            sender = self.sessions.get(sid)
            if sender is None:
                raise Unauthorized("Not registered")
            target = parse_role(to_role)
            if not can_message(sender.role, target):
                raise DirectionForbidden("Messages in this direction are not allowed")
            if not isinstance(text, str) or not text.strip():
                raise InvalidInput("Message text is required")
            to_sid = self.registry.find(sender.group, target)

        if to_sid is None:
            raise RecipientNotFound(f"User {target.value} not found in group {sender.group}")
        return [Event(to_sid, 'private_message', {
            'fromRole': sender.role.value,
            'fromName': sender.name,
            'text': text,
            'timestamp': self._clock(),
        })]

    def submit_answer(self, sid: str, answer) -> List[Event]:
        with self._lock:
            sender = self.sessions.get(sid)
            if sender is None:
                raise Unauthorized("Not registered")
            if sender.role != ANSWER_ROLE:
                raise Forbidden(f"Only {ANSWER_ROLE.value} can submit the final answer")
            if answer is None or not str(answer).strip():
                raise InvalidInput("Answer is required")
            members = self.registry.members(sender.group)

        message = f"Player {sender.name} ({sender.role.value}) submitted the answer: {answer}"
        return [Event(member, 'game_result', {'message': message}) for member in members]

    # --- disconnect ---

    def disconnect(self, sid: str) -> Tuple[Optional[Participant], List[Event]]:
        with self._lock:
            participant = self.sessions.remove(sid)
            self.registry.release(sid)
            if participant is None:
                return None, []
            return participant, self._roster_events(participant.group)

    # --- roster ---

    def get_participant(self, sid: str) -> Optional[Participant]:
        return self.sessions.get(sid)

    def roster(self, group: int) -> List[dict]:
        with self._lock:
            players = []
            for member in self.registry.members(group):
                p = self.sessions.get(member)
                if p is not None:
                    players.append(p.to_dict())
            return players

    def _roster_events(self, group: int) -> List[Event]:
        with self._lock:
            players = self.roster(group)
            members = self.registry.members(group)
        return [Event(member, 'players_update', players) for member in members]
