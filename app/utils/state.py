"""
Session state and long-lived resources shared by every page.

The dataset and chat transcript live in ``st.session_state`` for the length
of the browser session. The model worker is one process-wide resource owned
through ``st.cache_resource`` and torn down at interpreter exit.
"""
from __future__ import annotations

import atexit
import logging
import os

import streamlit as st

from app.utils.assistant import greeting
from app.utils.dataset import Dataset
from app.utils.model_worker import ModelWorker
from app.utils.settings import AssistantSettings, Thresholds, get_setting, load_cfg

logger = logging.getLogger(__name__)

POINTS_KEY = "points"
MESSAGES_KEY = "messages"


def configure_logging() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def assistant_mode() -> str:
    # "model" loads a local LLM; "heuristic" only uses canned answers
    return get_setting("ASSISTANT_MODE", "model")


def init_session() -> None:
    if POINTS_KEY not in st.session_state:
        st.session_state[POINTS_KEY] = ()
    if MESSAGES_KEY not in st.session_state:
        st.session_state[MESSAGES_KEY] = [greeting()]


def snapshot() -> Dataset:
    """The dataset as of this rerun; take it once and pass it everywhere."""
    return tuple(st.session_state[POINTS_KEY])


@st.cache_data(show_spinner=False)
def thresholds() -> Thresholds:
    return Thresholds.from_cfg(load_cfg())


@st.cache_resource(show_spinner=False)
def get_worker() -> ModelWorker:
    settings = AssistantSettings.from_cfg(load_cfg())
    worker = ModelWorker.from_settings(settings)
    atexit.register(worker.terminate)
    if assistant_mode() == "model":
        logger.info("Starting model worker with %d provider(s)", len(worker.providers))
        worker.load_async()
    return worker
