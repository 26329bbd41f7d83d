"""
chat_agent.py
-------------
Assistant behind the dashboard chat box. Calendar questions are answered
with the current events in context; everything else is plain chat.
"""

import logging

import openai_handler
from calendar_handler import CalendarError
from config import load_clean_config

logger = logging.getLogger(__name__)
config = load_clean_config()

ERROR_REPLY = "I apologize, but I encountered an error processing your request. Please try again."
CALENDAR_ERROR_REPLY = (
    "I encountered an error while accessing your calendar. "
    "Please check your permissions and try again."
)


def detect_calendar_intent(message):
    text = message.lower()
    if not any(word in text for word in ("calendar", "event", "schedule", "appointment")):
        return None
    if any(word in text for word in ("insight", "analyze", "analyse", "summary")):
        return "insights"
    if any(word in text for word in ("list", "show", "what")):
        return "list"
    if any(word in text for word in ("update", "modify", "change", "move")):
        return "update"
    if any(word in text for word in ("delete", "remove", "cancel")):
        return "delete"
    if any(word in text for word in ("create", "add", "book", "schedule")):
        return "create"
    return "list"


class ChatAgent:
    def __init__(self, calendar):
        self.calendar = calendar

    def process_message(self, message, history=None):
        """
        Answers one dashboard chat message.

        Returns:
            dict: message, action and, for calendar replies, events/insights.
        """
        conversation = list(history or []) + [{"role": "user", "content": message}]
        intent = detect_calendar_intent(message)
        try:
            if intent is None:
                return {"message": openai_handler.chat(conversation), "action": "chat"}
            return self._handle_calendar(intent, message, conversation)
        except CalendarError as e:
            logger.error(f"Calendar request failed in chat: {e}")
            return {"message": CALENDAR_ERROR_REPLY, "action": "error"}
        except openai_handler.LLMError as e:
            logger.error(f"Chat request failed: {e}")
            return {"message": ERROR_REPLY, "action": "error"}

    def _handle_calendar(self, intent, message, conversation):
        if intent == "create":
            try:
                event = openai_handler.build_calendar_event(message, {}, config["CALENDAR_TIMEZONE"])
            except openai_handler.LLMError:
                return {
                    "message": "I had trouble understanding the event details. "
                               "Please provide the event information in a clear format.",
                    "action": "error",
                }
            created = self.calendar.create_event(event)
            return {
                "message": f"I've created the event: {created['summary']}",
                "events": [created],
                "action": "create",
            }

        if intent == "update":
            return {
                "message": "I can help you update events. Please specify which event "
                           "you'd like to modify and what changes you want to make.",
                "action": "update",
            }
        if intent == "delete":
            return {
                "message": "I can help you delete events. Please specify which event you'd like to remove.",
                "action": "delete",
            }

        events = self.calendar.list_events()
        if intent == "insights":
            insights = openai_handler.chat(
                [{
                    "role": "user",
                    "content": "Summarise this schedule, point out conflicts or overlaps, "
                               "and list upcoming events to prepare for.",
                }],
                calendar_events=events,
            )
            return {"message": insights, "events": events, "insights": insights, "action": "insights"}

        reply = openai_handler.chat(conversation, calendar_events=events)
        return {"message": reply, "events": events, "action": "list"}
