"""
watcher/classifier/prompt.py
Extraction prompt for the classifier. Deterministic: the same transcript and
clock always produce the same text, so temperature-0 runs are repeatable.
"""

from datetime import datetime

from watcher.context.transcript import BOUNDARY, Transcript


def build_prompt(transcript: Transcript, now: datetime) -> str:
    """
    Embed the transcript, the current date/time with weekday (so "Friday"
    and "tomorrow" resolve), and the extraction rules.
    """
    stamp = now.strftime('%Y-%m-%dT%H:%M:%S')
    day   = now.strftime('%A')
    year  = now.year

    return (
        "CRITICAL RULES (follow these exactly):\n"
        f'- ONLY extract items from NEW [them] messages (after "{BOUNDARY}")\n'
        f'- NEVER extract items from context messages (before "{BOUNDARY}")\n'
        "- NEVER extract items from [me] messages\n"
        "- If a NEW [them] message is just casual conversation with no dates, plans, "
        "or requests, return empty items\n"
        "- ONLY return items actually found in the NEW messages. NEVER invent items "
        "or copy from these instructions.\n\n"
        "You analyze iMessages between a user and a monitored contact.\n"
        "Messages marked [them] are from the monitored contact. "
        "Messages marked [me] are from the user.\n"
        f'Only the messages after "{BOUNDARY}" are unprocessed.\n\n'
        f"Current date/time: {stamp} ({day})\n"
        f"Current year is {year}. ALL event dates MUST use this year "
        "(or next year for dates clearly in the future).\n\n"
        "For each NEW [them] message, determine if it contains:\n"
        '1. "event" — a calendar event: dinner, appointment, birthday, meeting, trip, '
        "party, recital, game, etc.\n"
        '2. "task" — a request or ask directed at the user: pick up X, call Y, fix Z, '
        "buy something, etc.\n\n"
        "Rules:\n"
        '- Confirmed or stated plans ARE events ("dinner friday at 7", "dentist tuesday 3pm")\n'
        '- Someone asking a question is NOT an event ("should we do dinner friday?")\n'
        "- Past tense / memories are NOT events (\"remember last week's dinner\")\n"
        "- Casual conversation, greetings, status updates are NEITHER events nor tasks\n"
        "- A single message can contain multiple items\n"
        "- For events: provide title, ISO 8601 start/end timestamps (no timezone suffix), "
        "and all_day boolean. If no end time, default to 1 hour after start. "
        'Use the current date/time above to resolve relative dates like "Tuesday" or "tomorrow".\n'
        '- If no specific time is mentioned (just a date like "March 7"), set all_day to true '
        "and use T00:00:00 for both start and end.\n"
        "- Multi-day events: set start to first day T00:00:00 and end to last day T23:59:00, "
        "all_day true.\n"
        "- For tasks: provide title and due_minutes (how many minutes from now the reminder "
        "should fire, default 30).\n\n"
        "Conversation:\n"
        f"{transcript.render()}\n"
        "Respond ONLY with valid JSON (no markdown, no commentary). Use this exact schema:\n"
        '{"items": [{"type": "event", "title": "Dinner with Smiths", '
        '"start": "2025-03-15T19:00:00", "end": "2025-03-15T20:00:00", "all_day": false}]}\n'
        'Or for tasks: {"items": [{"type": "task", "title": "Pick up groceries", '
        '"due_minutes": 30}]}\n'
        'If nothing actionable found: {"items": []}'
    )
