"""In-memory room state owned by a shard."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from roomsync.providers import ChatBroadcaster, NullBroadcaster, SessionProvider
from roomsync.utils.metrics import record_session_duration
from roomsync.utils.time import utc_now, to_epoch_ms, from_epoch_ms

logger = logging.getLogger(__name__)

# Chat history kept per room
MAX_CHAT_MESSAGES = 100


@dataclass
class Participant:
    """A connected client in a room's roster."""
    id: str
    name: Optional[str] = None
    is_video_chat: bool = False
    uid: Optional[str] = None


@dataclass
class Lock:
    """TTL keys that must stay alive while a vBrowser session is in use."""
    key: str
    uid_key: Optional[str] = None


@dataclass
class VBrowserSession:
    """Remote-browser session assigned to a room."""
    id: str
    provider: str
    assign_time: Optional[datetime] = None
    large: bool = False
    region: Optional[str] = None
    creator_uid: Optional[str] = None
    creator_client_id: Optional[str] = None

    @property
    def lock_key(self) -> str:
        return f"lock:{self.provider}:{self.id}"

    @property
    def uid_lock_key(self) -> Optional[str]:
        if not self.creator_uid:
            return None
        return f"vBrowserUIDLock:{self.creator_uid}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "provider": self.provider,
            "assignTime": to_epoch_ms(self.assign_time) if self.assign_time else None,
            "large": self.large,
            "region": self.region,
            "creatorUID": self.creator_uid,
            "creatorClientID": self.creator_client_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VBrowserSession":
        assign_time = data.get("assignTime")
        return cls(
            id=data["id"],
            provider=data["provider"],
            assign_time=from_epoch_ms(assign_time) if assign_time else None,
            large=bool(data.get("large", False)),
            region=data.get("region"),
            creator_uid=data.get("creatorUID"),
            creator_client_id=data.get("creatorClientID"),
        )


class Room:
    """
    A watch room held in memory by exactly one shard.

    The shard's registry is the system of record while the room is cached;
    durable rows are refreshed from here by the persistence loop.
    """

    def __init__(
        self,
        room_id: str,
        broadcaster: Optional[ChatBroadcaster] = None,
        session_provider: Optional[SessionProvider] = None,
        redis=None,
        clock=utc_now
    ):
        self.room_id = room_id
        self.broadcaster = broadcaster or NullBroadcaster()
        self.session_provider = session_provider
        self.redis = redis
        self.clock = clock

        now = clock()
        self.roster: List[Participant] = []
        self.chat: List[Dict[str, Any]] = []
        self.video: Optional[str] = None
        self.video_ts: float = 0
        self.owner: Optional[str] = None
        self.creator: Optional[str] = None
        self.vanity: Optional[str] = None
        self.password: Optional[str] = None
        self.is_sub_room: bool = False
        self.vbrowser: Optional[VBrowserSession] = None
        self.creation_time: datetime = now
        self.last_update_time: datetime = now
        self.destroyed = False

    def __repr__(self) -> str:
        return f"<Room {self.room_id} roster={len(self.roster)} vbrowser={bool(self.vbrowser)}>"

    @property
    def lock(self) -> Optional[Lock]:
        """Lock keys referenced by the active session, if any."""
        if not self.vbrowser:
            return None
        return Lock(key=self.vbrowser.lock_key, uid_key=self.vbrowser.uid_lock_key)

    def assign_vbrowser(self, session: VBrowserSession) -> None:
        """Attach a newly provisioned session, stamping its assignment time once."""
        if self.vbrowser is not None:
            raise ValueError(f"Room {self.room_id} already has a vBrowser session")
        if session.assign_time is None:
            session.assign_time = self.clock()
        self.vbrowser = session

    async def stop_vbrowser(self) -> Optional[VBrowserSession]:
        """
        Release the room's vBrowser session.

        The session reference is cleared before any I/O so that a concurrent
        job never sees a half-released room. Teardown is requested from the
        session provider first; dropping the creator's uid lock, recording the
        session duration and notifying clients are best effort and never
        prevent the teardown request.

        Returns:
            The released session, or None if there was none

        Raises:
            ProviderError: If the session provider rejected the teardown
        """
        session = self.vbrowser
        if session is None:
            return None
        self.vbrowser = None

        try:
            if self.session_provider is not None:
                await self.session_provider.release_session(session)
        finally:
            await self._cleanup_session(session)

        logger.info(f"Released vBrowser {session.provider}:{session.id} from {self.room_id}")
        return session

    async def _cleanup_session(self, session: VBrowserSession) -> None:
        try:
            self.broadcaster.broadcast(self.room_id, "REC:host", {"video": None})
        except Exception as e:
            logger.warning(f"Host broadcast failed for {self.room_id}: {e}")

        if self.redis is None:
            return
        if session.uid_lock_key:
            try:
                await self.redis.delete(session.uid_lock_key)
            except Exception as e:
                logger.warning(f"Failed to drop {session.uid_lock_key}: {e}")
        if session.assign_time:
            elapsed = self.clock() - session.assign_time
            try:
                await record_session_duration(self.redis, int(elapsed.total_seconds() * 1000))
            except Exception as e:
                logger.warning(f"Failed to record session duration for {self.room_id}: {e}")

    def add_chat_message(self, sender: Optional[Participant], message: Dict[str, Any]) -> Dict[str, Any]:
        """Append to chat history and push to connected clients (fire-and-forget)."""
        entry = {
            **message,
            "id": sender.id if sender else message.get("id", ""),
            "timestamp": self.clock().isoformat(),
        }
        self.chat.append(entry)
        if len(self.chat) > MAX_CHAT_MESSAGES:
            self.chat = self.chat[-MAX_CHAT_MESSAGES:]
        try:
            self.broadcaster.broadcast(self.room_id, "REC:chat", entry)
        except Exception as e:
            logger.warning(f"Chat broadcast failed for {self.room_id}: {e}")
        return entry

    def add_system_message(self, cmd: str, msg: str = "") -> Dict[str, Any]:
        return self.add_chat_message(None, {"id": "", "system": True, "cmd": cmd, "msg": msg})

    async def destroy(self) -> None:
        """
        Release the vBrowser session, if any, and drop everything the room holds.

        Raises:
            ProviderError: If the session teardown was rejected (the room is
                still cleared)
        """
        self.destroyed = True
        try:
            await self.stop_vbrowser()
        finally:
            self.roster.clear()
            self.chat.clear()
            logger.debug(f"Destroyed room {self.room_id}")

    def serialize(self) -> Dict[str, Any]:
        """State stored in the durable row's `data` column."""
        return {
            "video": self.video,
            "videoTS": self.video_ts,
            "chat": self.chat,
            "vBrowser": self.vbrowser.to_dict() if self.vbrowser else None,
            "creator": self.creator,
        }

    def load_data(self, data: Optional[Dict[str, Any]]) -> None:
        """Restore state previously produced by serialize()."""
        if not data:
            return
        self.video = data.get("video")
        self.video_ts = data.get("videoTS") or 0
        self.chat = list(data.get("chat") or [])[-MAX_CHAT_MESSAGES:]
        self.creator = data.get("creator")
        vbrowser = data.get("vBrowser")
        self.vbrowser = VBrowserSession.from_dict(vbrowser) if vbrowser else None
