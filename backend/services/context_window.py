# services/context_window.py
# 대화 단위 메시지 버퍼 + 오라클 입력용 문맥 창 선택
import logging
from collections import deque
from typing import Deque, Dict, Iterable, List

from schemas.audit_schema import Candidate, Message

logger = logging.getLogger(__name__)


class ConversationBuffer:
    """
    chat_id별로 최근 메시지를 제한된 개수만 보관하는 링 버퍼.
    모듈 전역 캐시 대신 실행마다 만들어 주입한다.

    :param max_per_chat: 대화별 최대 보관 개수(넘치면 가장 오래된 것부터 밀려남)
    :type max_per_chat: int
    """

    def __init__(self, max_per_chat: int = 200):
        self.max_per_chat = max_per_chat
        self._chats: Dict[str, Deque[Message]] = {}

    @classmethod
    def from_messages(cls, messages: Iterable[Message], max_per_chat: int = 200) -> "ConversationBuffer":
        buf = cls(max_per_chat)
        # 시간순으로 넣어야 링 버퍼가 '최근' 메시지를 남긴다
        for msg in sorted(messages, key=lambda m: m.timestamp):
            buf.add(msg)
        return buf

    def add(self, message: Message) -> None:
        q = self._chats.get(message.chat_id)
        if q is None:
            q = self._chats[message.chat_id] = deque(maxlen=self.max_per_chat)
        q.append(message)

    def for_chat(self, chat_id: str) -> List[Message]:
        return list(self._chats.get(chat_id, ()))

    def __len__(self) -> int:
        return sum(len(q) for q in self._chats.values())


class ContextWindowBuilder:
    """
    후보와 같은 대화에서 ±window_seconds 안의 메시지를 골라 시간 오름차순으로 돌려준다.
    개수가 max_messages를 넘으면 후보 시각에 가까운 것부터 남긴다.
    """

    def __init__(self, window_seconds: int = 2 * 60 * 60, max_messages: int = 8):
        self.window_seconds = window_seconds
        self.max_messages = max_messages

    def build(self, candidate: Candidate, buffer: ConversationBuffer) -> List[Message]:
        target = candidate.timestamp
        near = [
            m for m in buffer.for_chat(candidate.chat_id)
            if abs(m.timestamp - target) <= self.window_seconds
        ]
        if len(near) > self.max_messages:
            near = sorted(near, key=lambda m: (abs(m.timestamp - target), m.timestamp))[: self.max_messages]
        near.sort(key=lambda m: m.timestamp)
        logger.debug("[AUDIT] context for %s: %d messages", candidate.id, len(near))
        return near
