"""
callsense/mentor.py
====================
Sales Mentor Chat — CallSense

Responsibility:
    - Answer a responder's free-form sales question with the mentor persona
    - Degrade to short fixed replies when the model is silent or unreachable

This module does NOT:
    - Keep chat history (the client holds the conversation)
    - Use company knowledge
"""

import logging

from callsense import genai_client

logger = logging.getLogger("callsense.mentor")

EMPTY_REPLY = "Error."
SERVICE_ERROR = "Service error."

_MENTOR_PROMPT: str = """You are a Sales Mentor for company responders.
Rules:
Be polite, answer general question also, give very concise, to-the-point answers.
No explanations, no storytelling untill asked.
Respond in short sentences or bullet points until asked in detail.
Focus only on practical sales advice.
Do not repeat the question.
Do not add assumptions.
If information is missing, say "Insufficient data."
Tone:
Clear, Direct, Action-oriented, polite
Task:
Answer the responder's question with only what is necessary to act immediately.. User: {question}"""


def ask_mentor(question: str, client=None) -> str:
    """Return the mentor's answer to ``question``."""
    try:
        text = genai_client.generate(_MENTOR_PROMPT.format(question=question), client=client)
    except Exception as exc:
        logger.error("Mentor request failed: %s", exc, exc_info=True)
        return SERVICE_ERROR

    return text or EMPTY_REPLY
