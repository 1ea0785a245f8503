import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Union

from app.agents.brain import Brain
from app.auth.entity.entity import AuthResult, RejectReason
from app.auth.service.auth_service import AuthService
from app.chat.entity.chat import ChatMessage, Connection, ConnectionSession, MessageRole
from app.chat.service.framing import (
    CLOSE_GOING_AWAY,
    CLOSE_POLICY_VIOLATION,
    CLOSE_SERVER_ERROR,
    chat_line,
    describe_close,
    error_notice,
    notice,
    notification,
    refusal,
)
from app.chat.service.memory import ConversationMemory
from app.chat.service.reply_queue import ReplyQueue
from app.core.logger import get_logger
from pkg.util.text import decode_message

logger = get_logger("ChatRoom")

ROOM_MODE_SINGLE = "single"
ROOM_MODE_SHARED = "shared"

SYSTEM_ATTRIBUTION = "System"
REPLY_FAILED = "Sorry, the AI ran into an error while handling your request. Please try again later."


class ChatRoom:
    """
    Session actor for one logical room.

    Owns the live connections, authorization, rate limiting and the room's
    memory. Replies are produced by the Brain through a single-worker queue,
    so they are delivered in the order their messages were accepted.

    In "single" mode one authenticated connection occupies the room. In
    "shared" mode any number of identities may be connected (one connection
    each); chat lines and replies are broadcast and the robot only answers
    messages addressed to it.
    """

    def __init__(
        self,
        memory: ConversationMemory,
        auth: AuthService,
        brain: Brain,
        robot_name: str = "EMO",
        mode: str = ROOM_MODE_SINGLE,
        max_message_length: int = 4096,
        rate_limit_ms: int = 1000,
        enable_commands: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        if mode not in (ROOM_MODE_SINGLE, ROOM_MODE_SHARED):
            raise ValueError(f"Unknown room mode: {mode}")
        self.memory = memory
        self.auth = auth
        self.brain = brain
        self.robot_name = robot_name
        self.mode = mode
        self.max_message_length = max_message_length
        self.rate_limit_ms = rate_limit_ms
        self.enable_commands = enable_commands
        self._clock = clock
        self.sessions: Dict[str, ConnectionSession] = {}
        self.replies = ReplyQueue()

    @property
    def online_count(self) -> int:
        return len(self.sessions)

    @property
    def is_shared(self) -> bool:
        return self.mode == ROOM_MODE_SHARED

    def _find_identity(self, identity: str) -> Optional[ConnectionSession]:
        return next((s for s in self.sessions.values() if s.identity == identity), None)

    # ----------------------------
    # Connection lifecycle
    # ----------------------------
    def authenticate(self, identity: Optional[str], secret: Optional[str]) -> AuthResult:
        """Credential checks first, then room occupancy."""
        result = self.auth.verify(identity, secret)
        if not result.authorized:
            return result

        if self._find_identity(identity) is not None:
            return AuthResult.rejected(
                RejectReason.ALREADY_CONNECTED, f"User '{identity}' is already online", identity
            )
        if not self.is_shared and self.sessions:
            return AuthResult.rejected(
                RejectReason.ALREADY_CONNECTED,
                "Another user is already online. Please try again later.",
                identity,
            )
        return result

    async def connect(
        self, connection: Connection, identity: Optional[str], secret: Optional[str]
    ) -> Optional[ConnectionSession]:
        """Authorize and accept, or refuse and close. Returns the session when accepted."""
        result = self.authenticate(identity, secret)
        if not result.authorized:
            logger.info(f"Rejected connection for {identity!r}: {result.reason.value}")
            await self.reject(connection, result.message)
            return None
        return await self.accept(connection, result.identity)

    async def reject(self, connection: Connection, reason: str) -> None:
        """Send exactly one refusal frame, then close with the policy code."""
        try:
            await connection.send_text(refusal(reason))
            await connection.close(code=CLOSE_POLICY_VIOLATION, reason=reason)
        except Exception as e:
            logger.debug(f"Refused connection already gone: {e}")

    async def accept(self, connection: Connection, identity: str) -> ConnectionSession:
        # registered before the first await so a concurrent attempt sees the slot taken
        session = ConnectionSession(identity=identity, connection=connection)
        self.sessions[session.session_id] = session

        try:
            await self.memory.append(
                ChatMessage(role=MessageRole.USER, content=f"{identity} joined", attribution=SYSTEM_ATTRIBUTION)
            )
        except Exception:
            self.sessions.pop(session.session_id, None)
            raise

        logger.info(f"{identity} connected (session {session.session_id}, online {self.online_count})")
        if self.is_shared:
            await self.broadcast(notification(f"Welcome {identity} to the room!"))
        await self._send(session, chat_line(self.robot_name, self._welcome(identity)))
        return session

    def _welcome(self, identity: str) -> str:
        text = f"Hi {identity}! I'm your AI assistant {self.robot_name}. How can I help you?"
        if self.is_shared:
            text += f" Start a message with {self.robot_name} or @{self.robot_name} to call me."
        return text

    async def on_close(self, session_id: str, code: int, reason: Optional[str] = None) -> None:
        session = self.sessions.pop(session_id, None)
        if session is None:
            return
        logger.info(f"{session.identity} disconnected ({describe_close(code, reason)})")

        # a refusal is not a departure
        if code == CLOSE_POLICY_VIOLATION:
            return

        if self.is_shared:
            await self.broadcast(notification(f"{session.identity} left the room"))
        try:
            await self.memory.append(
                ChatMessage(
                    role=MessageRole.USER, content=f"{session.identity} left", attribution=SYSTEM_ATTRIBUTION
                )
            )
        except Exception as e:
            logger.error(f"Failed to record departure of {session.identity}: {e}")

    # ----------------------------
    # Messages
    # ----------------------------
    async def on_message(self, session_id: str, raw: Union[str, bytes]) -> None:
        session = self.sessions.get(session_id)
        if session is None:
            logger.debug(f"Message for unknown session {session_id} ignored")
            return
        session.last_activity_at = datetime.now(timezone.utc)

        text = decode_message(raw).strip()
        if not text:
            await self._send(session, notice("Message cannot be empty."))
            return
        if len(text) > self.max_message_length:
            await self._send(session, notice(f"Message is too long (max {self.max_message_length} characters)."))
            return

        now = self._clock()
        if session.last_message_at is not None and (now - session.last_message_at) * 1000 < self.rate_limit_ms:
            await self._send(session, notice("You are sending messages too fast. Please take a break."))
            return
        session.last_message_at = now

        if self.enable_commands and await self._handle_command(session, text):
            return

        if self.is_shared:
            await self.broadcast(chat_line(session.identity, text))

        try:
            await self.memory.append(ChatMessage(role=MessageRole.USER, content=text, attribution=session.identity))
        except Exception as e:
            logger.error(f"Failed to store message from {session.identity}: {e}")
            await self._send(session, error_notice("Sorry, your message could not be saved. Please try again."))
            return

        if self.is_shared and not self._addresses_robot(text):
            return
        self.replies.submit(lambda: self._reply(session.session_id, session.identity))

    def _addresses_robot(self, text: str) -> bool:
        lowered = text.lower()
        name = self.robot_name.lower()
        return lowered.startswith(name) or lowered.startswith(f"@{name}")

    async def _handle_command(self, session: ConnectionSession, text: str) -> bool:
        command = text.lower()
        if command == "/help":
            hint = f"Start a message with {self.robot_name} to call the AI." if self.is_shared else "Just chat."
            await self._send(session, notice(f"{hint} Commands: /help, /who"))
            return True
        if command == "/who":
            await self._send(session, notice(f"Online now: {self.online_count}"))
            return True
        return False

    async def _reply(self, session_id: str, identity: str) -> None:
        """One queued reasoning turn. Never raises; failures become a notice."""
        try:
            await self.memory.ensure_loaded()
            thought = await self.brain.think(identity, self.memory.context_view())
            for message in thought.tool_messages:
                await self.memory.append(message)
            await self.memory.append(
                ChatMessage(role=MessageRole.ASSISTANT, content=thought.answer, attribution=self.robot_name)
            )
            await self._deliver(session_id, chat_line(self.robot_name, thought.answer))
        except Exception as e:
            logger.error(f"AI reply for {identity} failed: {e}")
            await self._deliver(session_id, error_notice(REPLY_FAILED))

    # ----------------------------
    # Delivery
    # ----------------------------
    async def _send(self, session: ConnectionSession, frame: str) -> bool:
        try:
            await session.connection.send_text(frame)
            return True
        except Exception as e:
            logger.debug(f"Send to {session.identity} failed, frame discarded: {e}")
            return False

    async def _deliver(self, session_id: str, frame: str) -> None:
        """Send a reply to its session (or everyone in shared mode); a vanished session drops it."""
        if self.is_shared:
            await self.broadcast(frame)
            return
        session = self.sessions.get(session_id)
        if session is None:
            logger.debug(f"Session {session_id} is gone; reply discarded")
            return
        await self._send(session, frame)

    async def broadcast(self, frame: str) -> None:
        for session in list(self.sessions.values()):
            if await self._send(session, frame):
                continue
            try:
                await session.connection.close(code=CLOSE_SERVER_ERROR, reason="failed to deliver")
            except Exception as e:
                logger.debug(f"Closing {session.identity} after failed delivery: {e}")

    # ----------------------------
    # Administration
    # ----------------------------
    async def history(self, view: str = "full") -> List[ChatMessage]:
        await self.memory.ensure_loaded()
        return self.memory.context_view() if view == "context" else self.memory.full_view()

    async def clear_memory(self) -> None:
        await self.memory.clear()
        logger.info("Memory cleared")

    async def drain(self) -> None:
        """Wait for every queued reply to finish."""
        await self.replies.join()

    async def shutdown(self) -> None:
        await self.replies.close()
        for session in list(self.sessions.values()):
            try:
                await session.connection.close(code=CLOSE_GOING_AWAY, reason="server shutting down")
            except Exception as e:
                logger.debug(f"Closing {session.identity} on shutdown: {e}")
        self.sessions.clear()
