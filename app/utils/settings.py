"""
Configuration for the app and scripts.

Values come from ``config/config.yaml`` (or the file named by LINREG_CONFIG)
with built-in defaults for anything missing. Deployment switches such as
ASSISTANT_MODE are read from Streamlit secrets first, then the environment.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import streamlit as st
import yaml
from streamlit.errors import StreamlitAPIException

CONFIG_PATH = Path(os.environ.get("LINREG_CONFIG", "config/config.yaml"))

DEFAULT_MODEL_ID = "google/gemma-3-270m-it"

DEFAULT_GENERATION = {
    "max_new_tokens": 150,
    "temperature": 0.7,
    "do_sample": True,
    "top_p": 0.9,
    "repetition_penalty": 1.1,
    "return_full_text": False,
}

DEFAULT_PROVIDERS = [
    {"name": "GPU", "device": "cuda"},
    {"name": "CPU", "device": "cpu"},
]


def load_cfg(path: Path | None = None) -> dict:
    path = path or CONFIG_PATH
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def get_setting(name: str, default: str) -> str:
    try:
        return st.secrets.get(name, os.environ.get(name, default))
    except (FileNotFoundError, StreamlitAPIException):
        # no secrets.toml outside a deployed app
        return os.environ.get(name, default)


@dataclass
class AssistantSettings:
    model_id: str = DEFAULT_MODEL_ID
    providers: List[Dict[str, str]] = field(default_factory=lambda: [dict(p) for p in DEFAULT_PROVIDERS])
    request_timeout_s: float = 60.0
    load_delay_s: float = 0.0
    generation: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_GENERATION))

    @classmethod
    def from_cfg(cls, cfg: dict) -> "AssistantSettings":
        a = cfg.get("assistant", {}) or {}
        generation = dict(DEFAULT_GENERATION)
        generation.update(a.get("generation", {}) or {})
        return cls(
            model_id=a.get("model_id", DEFAULT_MODEL_ID),
            providers=a.get("providers") or [dict(p) for p in DEFAULT_PROVIDERS],
            request_timeout_s=float(a.get("request_timeout_s", 60.0)),
            load_delay_s=float(a.get("load_delay_s", 0.0)),
            generation=generation,
        )


@dataclass
class Thresholds:
    strong_correlation: float = 0.8
    moderate_correlation: float = 0.5

    @classmethod
    def from_cfg(cls, cfg: dict) -> "Thresholds":
        th = cfg.get("thresholds", {}) or {}
        return cls(
            strong_correlation=float(th.get("strong_correlation", 0.8)),
            moderate_correlation=float(th.get("moderate_correlation", 0.5)),
        )
