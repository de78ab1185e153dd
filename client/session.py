"""Session context and the per-submission request flow.

Field ownership in ``SessionContext`` (one writer each):

* ``conversation`` is appended to and cleared only by ``RequestOrchestrator``.
* ``pending_images`` is filled by ``attach_image``/``remove_image`` and
  emptied by ``RequestOrchestrator.submit`` once the turn is built.
* ``is_open`` belongs to the UI (``open``/``close``).
* ``in_flight`` is set by ``RequestOrchestrator.submit`` and reset by it or by
  ``RequestOrchestrator.clear``, which also abandons the pending reply.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence

from agent.core.turns import InlineData, Role, Turn
from agent.errors import ChatError, ValidationError
from agent.pipeline import ChatReply
from client.conversation import ConversationStore
from client.markdown import render_plain
from client.render import RenderScheduler

logger = logging.getLogger(__name__)

MAX_PENDING_IMAGES = 10
MAX_IMAGE_BYTES = 5 * 1024 * 1024

GREETINGS = [
    "Ready to conquer UPSC? Let's begin.",
    "Prelims facts or Mains strategy? Ask away.",
    "Stuck on a topic? I'm here to help.",
    "Let's turn your doubts into strengths.",
]

APOLOGY = (
    "I apologize, but I am unable to connect to the server right now. "
    "Please check your connection."
)

Responder = Callable[[Sequence[Turn], Optional[str]], Awaitable[ChatReply]]


@dataclass
class SessionContext:
    conversation: ConversationStore
    pending_images: List[InlineData] = field(default_factory=list)
    is_open: bool = False
    in_flight: bool = False

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    def attach_image(self, mime_type: str, data: str) -> InlineData:
        if len(self.pending_images) >= MAX_PENDING_IMAGES:
            raise ValidationError(f"You can only upload a maximum of {MAX_PENDING_IMAGES} images at a time.")
        try:
            size = len(base64.b64decode(data, validate=True))
        except (binascii.Error, ValueError) as exc:
            raise ValidationError("Image data is not valid base64.") from exc
        if size > MAX_IMAGE_BYTES:
            raise ValidationError("Image is too large (Max 5MB).")
        image = InlineData(mime_type=mime_type, data=data)
        self.pending_images.append(image)
        return image

    def remove_image(self, index: int) -> None:
        if 0 <= index < len(self.pending_images):
            del self.pending_images[index]


class RequestOrchestrator:
    def __init__(
        self,
        session: SessionContext,
        responder: Responder,
        renderer: RenderScheduler,
        query_type: Optional[str] = "academic",
    ) -> None:
        self.session = session
        self.responder = responder
        self.renderer = renderer
        self.query_type = query_type
        self._slot_counter = 0
        # Bumped by clear(); replies for an older epoch are dropped.
        self._epoch = 0

    def _next_slot(self) -> str:
        self._slot_counter += 1
        return f"msg-{self._slot_counter}"

    def _show_turn(self, turn: Turn, animate: bool = False) -> str:
        slot = self._next_slot()
        if turn.role is Role.ASSISTANT:
            self.renderer.play(slot, turn.text or "", animate=animate)
        else:
            markup = render_plain(turn.text or "")
            if turn.has_image:
                markup = f"[{len(turn.images)} image(s)]" + (f"<br>{markup}" if markup else "")
            self.renderer.display.show_formatted(slot, markup)
        return slot

    def restore(self) -> List[Turn]:
        """Rehydrate the log and redraw it without animation."""
        turns = self.session.conversation.rehydrate()
        for turn in turns:
            self._show_turn(turn, animate=False)
        return turns

    def greet(self) -> None:
        self.renderer.play(self._next_slot(), GREETINGS[0], animate=False)

    def clear(self) -> None:
        self._epoch += 1
        self.session.in_flight = False
        self.renderer.cancel_all()
        self.renderer.display.reset()
        self.session.conversation.clear()
        self.session.pending_images = []
        self.greet()

    async def submit(self, text: str = "") -> Optional[ChatReply]:
        session = self.session
        if session.in_flight:
            logger.info("Ignoring submission while a request is in flight")
            return None

        text = text.strip()
        images = list(session.pending_images)
        if not text and not images:
            return None

        epoch = self._epoch
        session.in_flight = True
        try:
            turn = Turn.user(text, images)
            session.conversation.append(turn)
            session.pending_images = []
            self._show_turn(turn)

            slot = self._next_slot()
            try:
                reply = await self.responder(session.conversation.all(), self.query_type)
            except ChatError as exc:
                logger.warning("Chat error: %s", exc.public_message)
                if epoch != self._epoch:
                    return None
                self.renderer.play(slot, APOLOGY, animate=False)
                return None

            if epoch != self._epoch:
                logger.info("Dropping reply for a conversation cleared mid-request")
                return None

            session.conversation.append(Turn.assistant(reply.text))
            self.renderer.play(slot, reply.text, animate=not reply.from_cache)
            return reply
        finally:
            if epoch == self._epoch:
                session.in_flight = False
