"""
watcher/context/transcript.py
Builds the conversation window handed to the classifier.

A few prior messages give the model context; the boundary line marks where
unprocessed content starts. Only lines after the boundary are in
extraction scope.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from watcher.models.record import Message
from watcher.parsers.chat_db_reader import ChatDbReader

logger = logging.getLogger(__name__)

BOUNDARY = '--- NEW ---'
THEM_TAG = '[them]'
ME_TAG   = '[me]'


def tag_line(msg: Message) -> str:
    return f"{ME_TAG if msg.is_from_me else THEM_TAG} {msg.text}"


@dataclass
class Transcript:
    context:       List[Message] = field(default_factory=list)
    new_messages:  List[Message] = field(default_factory=list)

    def render(self) -> str:
        lines = [tag_line(m) for m in self.context]
        lines.append(BOUNDARY)
        lines.extend(tag_line(m) for m in self.new_messages)
        return '\n'.join(lines) + '\n'

    @property
    def last_row_id(self) -> int:
        return self.new_messages[-1].row_id


class TranscriptBuilder:

    def __init__(self, reader: ChatDbReader, contact: str, context_count: int = 5):
        self.reader        = reader
        self.contact       = contact
        self.context_count = context_count

    def build(self, new_messages: Sequence[Message]) -> Transcript:
        """
        Prefix the new messages with up to context_count earlier messages
        (both sides of the conversation) in chronological order.
        Raises StoreUnavailable / QueryError from the context fetch.
        """
        if not new_messages:
            raise ValueError("Transcript needs at least one new message")

        context: List[Message] = []
        if self.context_count > 0:
            recent = self.reader.fetch_messages(
                row_id_op   = '<',
                row_id      = new_messages[0].row_id,
                contact     = self.contact,
                include_own = True,
                limit       = self.context_count,
                descending  = True,
            )
            context = list(reversed(recent))

        logger.debug(f"Transcript: {len(context)} context + {len(new_messages)} new")
        return Transcript(context=context, new_messages=list(new_messages))
