"""
Room Registry - maps short room keys to live broadcast rooms
Owns key generation and viewer membership for every room in one relay instance
"""

import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Set

from mediarelay.config.logging_config import log_room_event
from mediarelay.models.error_models import RoomKeyExhaustedError
from mediarelay.models.response_models import RegistryStats

ConnectionId = str

_KEY_SOURCE_BOUND = 2 ** 31


@dataclass
class Room:
    """One streamer's broadcast session and its current viewers.

    ``viewers`` is only mutated by the owning registry while it holds its
    lock; everybody else works on :meth:`RoomRegistry.viewers_of` snapshots.
    """
    key: str
    streamer: ConnectionId
    created_at: float = field(default_factory=time.time)
    viewers: Set[ConnectionId] = field(default_factory=set)

    def snapshot(self) -> FrozenSet[ConnectionId]:
        return frozenset(self.viewers)


class JoinStatus(Enum):
    """Outcome of a join request"""
    JOINED = "joined"
    ROOM_NOT_FOUND = "room_not_found"


@dataclass(frozen=True)
class JoinOutcome:
    status: JoinStatus
    room_key: str
    streamer: Optional[ConnectionId] = None
    display_name: Optional[str] = None

    @property
    def joined(self) -> bool:
        return self.status == JoinStatus.JOINED


@dataclass(frozen=True)
class RemovedRoom:
    """A room taken out of the registry, with the viewers it had at that moment"""
    key: str
    streamer: ConnectionId
    viewers: FrozenSet[ConnectionId]


def generate_room_key(max_digits: int = 4) -> str:
    """Draw a non-negative integer from the OS CSPRNG and keep its leading digits"""
    value = secrets.randbelow(_KEY_SOURCE_BOUND)
    return str(value)[:max_digits]


class RoomRegistry:
    """Thread-safe room table.

    All lookups, inserts and removals happen under one lock, and the lock is
    never held while talking to the network: callers get immutable viewer
    snapshots and do their sends afterwards.
    """

    def __init__(self, key_digits: int = 4, max_key_attempts: int = 16, key_factory=None):
        self.logger = logging.getLogger(__name__)
        self.key_digits = key_digits
        self.max_key_attempts = max_key_attempts
        self._key_factory = key_factory or (lambda: generate_room_key(self.key_digits))
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()

        self.rooms_created = 0
        self.rooms_deleted = 0
        self.key_collisions = 0

    def create_room(self, streamer: ConnectionId) -> str:
        """Create a room owned by ``streamer`` and return its key.

        A drawn key that is already live is discarded and redrawn; a live
        room is never overwritten. Raises ``RoomKeyExhaustedError`` if every
        draw collides.
        """
        with self._lock:
            for _ in range(self.max_key_attempts):
                key = self._key_factory()
                if key not in self._rooms:
                    self._rooms[key] = Room(key=key, streamer=streamer)
                    self.rooms_created += 1
                    break
                self.key_collisions += 1
            else:
                raise RoomKeyExhaustedError(
                    f"No free room key after {self.max_key_attempts} attempts",
                    active_rooms=len(self._rooms),
                )

        self.logger.info(f"🏠 Room {key} created by {streamer}")
        log_room_event("create", key, streamer)
        return key

    def delete_room(self, key: str) -> Optional[RemovedRoom]:
        """Remove a room; returns it with its viewer snapshot, or None if absent"""
        with self._lock:
            room = self._rooms.pop(key, None)
            if room is None:
                return None
            removed = RemovedRoom(key=room.key, streamer=room.streamer, viewers=room.snapshot())
            self.rooms_deleted += 1

        self.logger.info(f"🗑️ Room {key} deleted ({len(removed.viewers)} viewers)")
        log_room_event("delete", key, removed.streamer, additional_data={"viewers": len(removed.viewers)})
        return removed

    def join_room(self, key: str, viewer: ConnectionId, display_name: Optional[str] = None) -> JoinOutcome:
        """Register ``viewer`` in room ``key`` if it exists"""
        with self._lock:
            room = self._rooms.get(key)
            if room is None:
                outcome = JoinOutcome(status=JoinStatus.ROOM_NOT_FOUND, room_key=key)
            else:
                room.viewers.add(viewer)
                outcome = JoinOutcome(
                    status=JoinStatus.JOINED,
                    room_key=key,
                    streamer=room.streamer,
                    display_name=display_name,
                )

        if outcome.joined:
            log_room_event("join", key, viewer, additional_data={"display_name": display_name})
        else:
            log_room_event("join", key, viewer, status="room_not_found")
        return outcome

    def leave_room(self, key: str, viewer: ConnectionId) -> bool:
        """Remove ``viewer`` from room ``key``; False if the room is not live"""
        with self._lock:
            room = self._rooms.get(key)
            if room is None:
                return False
            room.viewers.discard(viewer)

        log_room_event("leave", key, viewer)
        return True

    def on_connection_closed(self, connection: ConnectionId) -> List[RemovedRoom]:
        """Drop every room streamed by ``connection`` and its viewer registrations"""
        removed: List[RemovedRoom] = []
        with self._lock:
            for key in [k for k, room in self._rooms.items() if room.streamer == connection]:
                room = self._rooms.pop(key)
                removed.append(RemovedRoom(key=room.key, streamer=room.streamer, viewers=room.snapshot()))
            self.rooms_deleted += len(removed)

            for room in self._rooms.values():
                room.viewers.discard(connection)

        for room in removed:
            self.logger.info(f"🔌 Room {room.key} closed with its streamer {connection}")
            log_room_event("streamer_closed", room.key, connection)
        return removed

    def viewers_of(self, key: str) -> Optional[FrozenSet[ConnectionId]]:
        """Immutable snapshot of a room's viewers, or None if the room is not live"""
        with self._lock:
            room = self._rooms.get(key)
            return room.snapshot() if room is not None else None

    def get_room(self, key: str) -> Optional[Room]:
        """Copy of a room, safe to inspect outside the lock"""
        with self._lock:
            room = self._rooms.get(key)
            if room is None:
                return None
            return Room(key=room.key, streamer=room.streamer,
                        created_at=room.created_at, viewers=set(room.viewers))

    def rooms_streamed_by(self, connection: ConnectionId) -> List[str]:
        with self._lock:
            return [key for key, room in self._rooms.items() if room.streamer == connection]

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._rooms

    @property
    def room_count(self) -> int:
        with self._lock:
            return len(self._rooms)

    def get_stats(self) -> RegistryStats:
        with self._lock:
            total_viewers = sum(len(room.viewers) for room in self._rooms.values())
            return RegistryStats(
                active_rooms=len(self._rooms),
                total_viewers=total_viewers,
                rooms_created=self.rooms_created,
                rooms_deleted=self.rooms_deleted,
                key_collisions=self.key_collisions,
            )
