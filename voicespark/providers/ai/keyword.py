"""Credential-free turn generator backed by a fixed topic table."""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import structlog

from .base import TurnGenerator
from ...core.messages import Message, Role


logger = structlog.get_logger()


@dataclass(frozen=True)
class Topic:
    """A canned answer and the keywords that select it."""
    key: str
    keywords: Tuple[str, ...]
    answer: str


SUNDOWNING_HELP_ANSWER = (
    "Sundowning can be challenging. Try these strategies: 1) Maintain a consistent daily "
    "routine, 2) Increase lighting before sunset, 3) Reduce noise and stimulation in the "
    "evening, 4) Play calming music, 5) Create a safe and comfortable environment. Would "
    "you like more specific advice on any of these approaches?"
)

TOPICS: Tuple[Topic, ...] = (
    Topic(
        key="sundowning",
        keywords=("sundown",),
        answer=(
            "Sundowning refers to increased confusion, anxiety, agitation, pacing, and "
            "disorientation beginning at dusk and continuing throughout the night. Strategies "
            "include maintaining consistent routines, increasing light exposure during the "
            "day, reducing noise and stimulation in the evening, and creating a calm "
            "environment."
        ),
    ),
    Topic(
        key="medication management",
        keywords=("medication", "medicine", "pills"),
        answer=(
            "Managing medications for dementia patients involves creating a consistent "
            "schedule, using pill organizers, setting reminders, monitoring for side effects, "
            "and regularly reviewing medications with healthcare providers."
        ),
    ),
    Topic(
        key="communication",
        keywords=("communicat", "talk"),
        answer=(
            "Effective communication with dementia patients includes speaking clearly and "
            "slowly, using simple sentences, maintaining eye contact, minimizing distractions, "
            "being patient, and using visual cues when helpful."
        ),
    ),
    Topic(
        key="activities",
        keywords=("activit", "engage"),
        answer=(
            "Engaging activities for people with dementia could include music therapy, gentle "
            "exercise, looking at family photos, simple arts and crafts, or sensory activities "
            "like gardening or baking. Focus on activities that connect with their past "
            "interests and abilities."
        ),
    ),
    Topic(
        key="caregiver stress",
        keywords=("stress", "tired", "overwhelm", "myself", "burnout"),
        answer=(
            "Self-care is crucial for caregivers. Try to schedule regular breaks, join a "
            "support group, ask for help from family and friends, and consider respite care "
            "options. Remember that taking care of yourself improves your ability to care "
            "for your loved one."
        ),
    ),
)

DEFAULT_ANSWER = (
    "I understand caring for someone with dementia can be challenging. Could you provide "
    "more details about your specific concern?"
)
GREETING_ANSWER = "Hello! How can I help you with dementia care today?"
GOODBYE_ANSWER = (
    "It has been so lovely talking with you today, and I will treasure our little chat. "
    "Take good care of yourself, and goodbye for now."
)


def match_topic(text: str) -> Optional[Topic]:
    """Return the first topic whose keywords appear in the text."""
    lowered = text.lower()
    for topic in TOPICS:
        if any(keyword in lowered for keyword in topic.keywords):
            return topic
    return None


def select_answer(text: str) -> Tuple[Optional[str], str]:
    """Return the matched topic key (or None) and the canned answer."""
    lowered = text.lower()
    if "help" in lowered and "sundown" in lowered:
        return "sundowning help", SUNDOWNING_HELP_ANSWER
    topic = match_topic(lowered)
    if topic is None:
        return None, DEFAULT_ANSWER
    return topic.key, topic.answer


def answer_for(text: str) -> str:
    """Pick the canned answer for a user utterance."""
    return select_answer(text)[1]


class KeywordTurnGenerator(TurnGenerator):
    """
    Local stand-in for a language-model backend.

    Used when no backend credential is configured. It never awaits anything,
    so a turn resolves as soon as it is requested.
    """

    name = "keyword"

    def __init__(self, system_prompt: str = ""):
        super().__init__(system_prompt)

    async def generate_turn(
        self, history: Sequence[Message], closing_directive: Optional[str] = None
    ) -> Message:
        self.turns_generated += 1
        if closing_directive:
            return Message.create(Role.ASSISTANT, GOODBYE_ANSWER)

        latest = self.latest_user_message(history)
        if latest is None:
            return Message.create(Role.ASSISTANT, GREETING_ANSWER)

        topic, answer = select_answer(latest.content)
        logger.debug("Keyword responder matched", topic=topic, text=latest.content[:50])
        return Message.create(Role.ASSISTANT, answer)
