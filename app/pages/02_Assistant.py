import logging

import streamlit as st

from app.utils.assistant import ERROR_REPLY, Message, answer, greeting
from app.utils.model_worker import ModelStatus
from app.utils.regression import format_summary_text, summarize
from app.utils.state import (
    MESSAGES_KEY,
    assistant_mode,
    configure_logging,
    get_worker,
    init_session,
    snapshot,
    thresholds,
)

logger = logging.getLogger(__name__)

st.set_page_config(page_title="Assistant", layout="wide")
configure_logging()
init_session()

worker = get_worker()
MODE = assistant_mode()

STATUS_LABELS = {
    ModelStatus.IDLE: "📊 Smart fallback (no model)",
    ModelStatus.LOADING: "🔄 Loading language model…",
    ModelStatus.LOADED: "🤖 Language model ready",
    ModelStatus.FAILED: "📊 Smart fallback active",
}

st.title("Assistant")
st.caption(STATUS_LABELS[worker.status] + (f" · {worker.model_name}" if worker.model_name else ""))

c1, c2 = st.columns([1, 1])
with c1:
    if worker.status is ModelStatus.FAILED and MODE == "model":
        st.button("Retry loading model", key="assistant_retry", on_click=lambda: worker.retry())
with c2:
    if st.button("Clear conversation", key="clear_chat"):
        st.session_state[MESSAGES_KEY] = [greeting()]

points = snapshot()
summary = summarize(points)

with st.expander("Data context shared with the assistant"):
    st.write(format_summary_text(summary))

for message in st.session_state[MESSAGES_KEY]:
    with st.chat_message("user" if message.is_user else "assistant"):
        st.markdown(message.text)
        st.caption(message.timestamp.strftime("%H:%M"))

question = st.chat_input(
    "Ask about linear regression, statistics, or your data...",
    disabled=worker.status is ModelStatus.LOADING,
)
if question and question.strip():
    history = list(st.session_state[MESSAGES_KEY])
    st.session_state[MESSAGES_KEY].append(Message(text=question, is_user=True))
    with st.chat_message("user"):
        st.markdown(question)

    with st.chat_message("assistant"):
        with st.spinner("Thinking…"):
            try:
                reply, source = answer(question, summary, history, worker, thresholds())
            except Exception:
                logger.exception("Assistant failed to answer")
                reply, source = ERROR_REPLY, "error"
        st.markdown(reply)
        st.caption(f"source: {source}")
    st.session_state[MESSAGES_KEY].append(Message(text=reply, is_user=False))
