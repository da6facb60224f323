"""
Chat assistant that explains the current regression.

Answers come from the text-generation model when the worker has one loaded;
otherwise (or when generation fails) a small set of keyword heuristics answers
from the computed summary directly.
"""
from __future__ import annotations

import logging
import math
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from app.utils.model_worker import ModelStatus, ModelWorker, WorkerError
from app.utils.regression import RegressionSummary, Summary, format_summary_text
from app.utils.settings import Thresholds

logger = logging.getLogger(__name__)

GREETING = (
    "Hi! I'm your AI assistant. I can help explain linear regression concepts, "
    "analyze your data, or answer questions about statistics. What would you like to know?"
)
ERROR_REPLY = "I'm experiencing technical difficulties. Please try again or ask a different question."

# token budget for the rolling conversation window
MAX_CONTEXT_TOKENS = 4000
SYSTEM_PROMPT_TOKENS = 200
RESPONSE_TOKENS = 150

SOURCE_MODEL = "model"
SOURCE_FALLBACK = "fallback"

PROMPT_TAIL = "Keep responses under 150 words."

FOLLOW_UP_CUES = ("what about", "and", "also", "how about", "explain that", "tell me more")


@dataclass
class Message:
    text: str
    is_user: bool
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=datetime.now)


def greeting() -> Message:
    return Message(text=GREETING, is_user=False)


def estimate_tokens(text: str) -> int:
    # ~4 characters per token
    return math.ceil(len(text) / 4)


def build_conversation_context(messages: Sequence[Message], question: str) -> str:
    """Most recent turns that fit the token budget, oldest first. Skips the greeting."""
    available = MAX_CONTEXT_TOKENS - SYSTEM_PROMPT_TOKENS - RESPONSE_TOKENS - estimate_tokens(question)
    lines: List[str] = []
    used = 0
    for message in reversed(messages[1:]):
        line = f"{'Human' if message.is_user else 'Assistant'}: {message.text}"
        cost = estimate_tokens(line)
        if used + cost > available:
            break
        lines.insert(0, line)
        used += cost
    return "\n\n".join(lines).strip()


def build_prompt(data_context: str, history: str, question: str) -> str:
    prompt = (
        "<start_of_turn>user\n"
        "You are a helpful AI assistant specialized in linear regression and statistics. "
        "You help users understand statistical concepts, analyze their data, and explain "
        "mathematical relationships. Be concise but informative, and maintain context from "
        "the conversation.\n\n"
        f"Current user's data context: {data_context}"
    )
    if history:
        prompt += f"\n\nPrevious conversation:\n{history}"
    prompt += (
        f"\n\nCurrent question: {question}\n\n"
        "Provide a helpful, accurate response about linear regression, statistics, or the "
        "user's data. Reference previous parts of our conversation when relevant. "
        f"{PROMPT_TAIL}\n"
        "<end_of_turn>\n"
        "<start_of_turn>model\n"
    )
    return prompt


def clean_generated_text(text: str) -> Optional[str]:
    """Strip an echoed prompt and turn markers; None if nothing usable is left."""
    cleaned = text
    if "<start_of_turn>model" in cleaned:
        cleaned = cleaned.rsplit("<start_of_turn>model", 1)[1]
    elif cleaned.lstrip().startswith("user"):
        # prompt echoed with the turn markers decoded away: "user ... model <reply>"
        start = cleaned.find(PROMPT_TAIL)
        idx = cleaned.find(" model ", start if start != -1 else 0)
        if idx != -1:
            cleaned = cleaned[idx + len(" model "):]
    cleaned = re.sub(r"<end_of_turn>.*$", "", cleaned, flags=re.S).strip()
    cleaned = re.sub(r"^<start_of_turn>.*$", "", cleaned, flags=re.M).strip()
    if len(cleaned) <= 5:
        return None
    return cleaned


def _generated_text(result) -> Optional[str]:
    if isinstance(result, list) and result and isinstance(result[0], dict):
        return result[0].get("generated_text")
    return None


def _strength(r: float, thresholds: Thresholds) -> str:
    if abs(r) > thresholds.strong_correlation:
        return "strong"
    if abs(r) > thresholds.moderate_correlation:
        return "moderate"
    return "weak"


def fallback_response(
    question: str,
    summary: Summary,
    history: str = "",
    thresholds: Optional[Thresholds] = None,
) -> str:
    """Keyword answers built from the summary; used when no model is available."""
    thresholds = thresholds or Thresholds()
    q = question.lower()
    is_follow_up = bool(history) and any(re.search(rf"\b{re.escape(c)}\b", q) for c in FOLLOW_UP_CUES)
    fitted = summary if isinstance(summary, RegressionSummary) else None

    if "r-squared" in q or "r²" in q or "r2" in q or "r squared" in q:
        reply = (
            "R-squared measures how well your regression line fits the data. Values closer to 1.0 "
            "indicate a better fit, meaning the line explains more of the variation in your data."
        )
        if fitted is not None and fitted.r2 is not None:
            reply += f" For your data R² = {fitted.r2:.3f}."
        if is_follow_up and "correlation" in history:
            reply += " R-squared is actually the square of the correlation coefficient we discussed!"
        return reply

    if "correlation" in q or re.search(r"\br\b", q):
        if fitted is not None and fitted.correlation is not None:
            r = fitted.correlation
            reply = (
                f"Your correlation coefficient is {r:.3f}, which indicates a {_strength(r, thresholds)} "
                f"{'positive' if r > 0 else 'negative'} linear relationship between your variables."
            )
            if is_follow_up and "slope" in history:
                reply += " This correlation relates to the slope we discussed - stronger correlations typically have steeper slopes."
            return reply

    if "slope" in q or "intercept" in q:
        if fitted is not None:
            slope, intercept = f"{fitted.slope:.3f}", f"{fitted.intercept:.3f}"
            reply = (
                f"Your regression line is y = {slope}x + {intercept}. The slope ({slope}) tells you "
                f"how much Y changes for each unit increase in X."
            )
            if is_follow_up and "correlation" in history:
                reply += " This slope is related to the correlation we discussed earlier."
            return reply

    if "regression" in q or "line" in q:
        return (
            "Linear regression finds the best-fitting straight line through your data points. It helps "
            "predict Y values based on X values and shows the relationship strength between variables."
        )

    if is_follow_up:
        return (
            "I understand you're asking a follow-up question, but I need my full AI capabilities to "
            "maintain context properly. Please try again when the AI model is loaded, or rephrase your "
            "question more specifically."
        )

    return (
        "I can help explain linear regression concepts like correlation, slope, intercept, and "
        "R-squared. Try asking about these specific topics!"
    )


def answer(
    question: str,
    summary: Summary,
    messages: Sequence[Message],
    worker: Optional[ModelWorker] = None,
    thresholds: Optional[Thresholds] = None,
) -> Tuple[str, str]:
    """
    Reply to ``question`` about the dataset behind ``summary``.

    ``messages`` is the transcript so far (greeting first, current question
    not yet included). Returns the reply text and its source, either
    ``"model"`` or ``"fallback"``.
    """
    data_context = format_summary_text(summary)
    history = build_conversation_context(messages, question)

    if worker is not None and worker.status is ModelStatus.LOADED:
        logger.info("Using model %s (~%d history tokens)", worker.model_name, estimate_tokens(history))
        try:
            result = worker.generate(build_prompt(data_context, history, question))
        except WorkerError as exc:
            logger.warning("Generation failed, using fallback: %s", exc)
        else:
            raw = _generated_text(result)
            reply = clean_generated_text(raw) if raw else None
            if reply:
                return reply, SOURCE_MODEL
            logger.warning("Model reply unusable after cleaning: %r", raw)

    return fallback_response(question, summary, history, thresholds), SOURCE_FALLBACK
