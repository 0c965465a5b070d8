from __future__ import annotations

HELP_TEXT = """Group Summary Bot Commands

Add me to a group; I record the conversation and post a daily summary
for groups that were active in the last 24 hours.

/summary <N>
Summarize the latest N messages
Example: /summary 300

/summary <N>h
Summarize the last N hours
Example: /summary 12h

/query <term>
Search recorded messages containing a term

/ask <question>
Ask a question about recent chat history; the answer arrives in a private chat.
Start a private chat with me first so I can message you.

/status
Check that the bot is alive

/version
Show the deployed version
"""


MESSAGES = {
    "usage_summary": "Please give a time range or message count, e.g. /summary 12h or /summary 420",
    "usage_query": "Please give a term to search for, e.g. /query release",
    "usage_ask": "Please give a question, e.g. /ask what did we decide about the meetup?",
    "group_only": "I am a group chat bot. Please add me to a group to use me.",
    "status_alive": "Up and running.",
    "version": "Current version: `{sha}`",
    "summary_empty": "There are not enough messages in that range to summarize.",
    "summary_failed": "Something went wrong while generating the summary. Please try again later.",
    "query_header": "Search results:",
    "query_empty": "No messages matched that term.",
    "ask_ack": "Got your question, thinking...",
    "ask_need_private_chat": 'Please open a private chat with me and press "Start" first, otherwise I cannot send you the answer.',
    "ask_no_history": "I do not have any chat history for this group yet.",
    "ask_failed": "Sorry, I ran into a problem while thinking and cannot answer right now.",
}


def msg(key: str, **kwargs: object) -> str:
    template = MESSAGES[key]
    return template.format(**kwargs)
