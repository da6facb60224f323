"""
E2E smoke: drives the Streamlit pages headlessly with AppTest.
The assistant runs in heuristic mode so no model is downloaded.
"""

from pathlib import Path

import pytest
from streamlit.testing.v1 import AppTest

from app.utils.dataset import EXAMPLE_POINTS, Point
from app.utils.glossary import DEGENERACY_MESSAGES

APP_DIR = Path(__file__).resolve().parents[2] / "app"
MAIN = str(APP_DIR / "streamlit_app.py")
CALCULATIONS = str(APP_DIR / "pages" / "01_Calculations.py")
ASSISTANT = str(APP_DIR / "pages" / "02_Assistant.py")


@pytest.fixture(autouse=True)
def heuristic_mode(monkeypatch):
    monkeypatch.setenv("ASSISTANT_MODE", "heuristic")


def open_app(script: str, points=None) -> AppTest:
    at = AppTest.from_file(script, default_timeout=30)
    at.secrets["ASSISTANT_MODE"] = "heuristic"
    if points is not None:
        at.session_state["points"] = tuple(points)
    return at.run()


def metrics(at: AppTest) -> dict:
    return {m.label: m.value for m in at.metric}


@pytest.mark.order(1)
def test_empty_app_renders_without_errors():
    at = open_app(MAIN)
    assert not at.exception
    assert any("No data yet" in i.value for i in at.info)
    assert at.session_state["points"] == ()


@pytest.mark.order(2)
def test_add_point_and_reject_invalid_input():
    at = open_app(MAIN)
    at.text_input(key="x_text").input("1")
    at.text_input(key="y_text").input("2.5")
    at.button(key="add_point").click().run()
    assert not at.exception
    assert at.session_state["points"] == (Point(1.0, 2.5),)
    # one point is not enough for a fit
    assert any(DEGENERACY_MESSAGES["insufficient data"] in w.value for w in at.warning)

    at.text_input(key="x_text").input("abc")
    at.text_input(key="y_text").input("3")
    at.button(key="add_point").click().run()
    assert any("X value" in e.value for e in at.error)
    assert len(at.session_state["points"]) == 1


@pytest.mark.order(3)
def test_example_data_fit():
    at = open_app(MAIN)
    at.button(key="load_example").click().run()
    assert not at.exception

    kpis = metrics(at)
    assert kpis["Points"] == "5"
    assert kpis["Slope (b₁)"] == "0.6000"
    assert kpis["Intercept (b₀)"] == "2.2000"
    assert kpis["R²"] == "0.6000"
    assert any("y = 0.6000x + 2.2000" in m.value for m in at.markdown)


@pytest.mark.order(4)
def test_remove_point_and_clear():
    at = open_app(MAIN, EXAMPLE_POINTS)
    at.selectbox(key="remove_idx").select(1)
    at.button(key="remove_point").click().run()
    assert at.session_state["points"] == EXAMPLE_POINTS[1:]

    at.button(key="clear_points").click().run()
    assert at.session_state["points"] == ()


@pytest.mark.order(5)
def test_identical_x_shows_degenerate_warning():
    at = open_app(MAIN, [Point(2.0, 1.0), Point(2.0, 5.0)])
    assert not at.exception
    assert any(DEGENERACY_MESSAGES["degenerate: zero x-variance"] in w.value for w in at.warning)


@pytest.mark.order(6)
def test_calculations_page_shows_equation():
    at = open_app(CALCULATIONS, EXAMPLE_POINTS)
    assert not at.exception
    assert any("y = 0.6000x + 2.2000" in m.value for m in at.markdown)

    at.selectbox(key="highlight_term").select("SCP").run()
    assert not at.exception
    assert any("SCP = Σ (x − x̄)(y − ȳ)" in c.value for c in at.caption)

    empty = open_app(CALCULATIONS)
    assert any(DEGENERACY_MESSAGES["insufficient data"] in i.value for i in empty.info)


@pytest.mark.order(7)
def test_assistant_answers_from_the_data():
    at = open_app(ASSISTANT, EXAMPLE_POINTS)
    assert not at.exception
    at.chat_input[0].set_value("What is the slope?").run()
    assert not at.exception

    messages = at.session_state["messages"]
    assert messages[-2].is_user and messages[-2].text == "What is the slope?"
    assert not messages[-1].is_user
    assert "0.600" in messages[-1].text

    at.button(key="clear_chat").click().run()
    assert len(at.session_state["messages"]) == 1
