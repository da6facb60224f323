import streamlit as st

from app.utils.charts import regression_chart
from app.utils.dataset import EXAMPLE_POINTS, InvalidPoint, add_point, parse_point, points_frame, remove_point
from app.utils.glossary import DEGENERACY_MESSAGES, STAT_TOOLTIPS
from app.utils.model_worker import ModelStatus
from app.utils.regression import RegressionSummary, format_equation, summarize
from app.utils.state import POINTS_KEY, assistant_mode, configure_logging, get_worker, init_session, snapshot
from app.utils.tables import COLUMN_GROUPS, calculation_table, styled_table

APP_TITLE = "Linear Regression Explorer"

st.set_page_config(page_title=APP_TITLE, layout="wide")
configure_logging()
init_session()

MODE = assistant_mode()
worker = get_worker()


# ---- Callbacks (run before the rerun, so widget values may be reset) ----
def _add_point():
    try:
        point = parse_point(st.session_state.get("x_text", ""), st.session_state.get("y_text", ""))
    except InvalidPoint as e:
        st.session_state["input_error"] = str(e)
        return
    st.session_state[POINTS_KEY] = add_point(st.session_state[POINTS_KEY], point)
    st.session_state["input_error"] = None
    st.session_state["x_text"] = ""
    st.session_state["y_text"] = ""


def _clear_points():
    st.session_state[POINTS_KEY] = ()
    st.session_state["input_error"] = None


def _load_example():
    st.session_state[POINTS_KEY] = EXAMPLE_POINTS


def _remove_selected():
    idx = st.session_state.get("remove_idx")
    if idx is not None:
        st.session_state[POINTS_KEY] = remove_point(st.session_state[POINTS_KEY], int(idx) - 1)


def _retry_model():
    worker.retry()


# ---- Sidebar / status ----
with st.sidebar:
    st.markdown(f"### {APP_TITLE}")
    st.caption("NumPy + Altair + Streamlit")
    st.write(f"**Assistant mode:** `{MODE}`")
    st.write(f"**Model status:** `{worker.status.value}`")
    if worker.model_name:
        st.caption(worker.model_name)
    if worker.progress is not None and worker.status is ModelStatus.LOADING:
        st.progress(worker.progress.progress / 100, text=worker.progress.status)
    if worker.status is ModelStatus.FAILED:
        st.caption("Smart fallback active: the assistant answers from the computed statistics.")
        st.button("Retry loading model", on_click=_retry_model, key="retry_model")
    if st.button("Refresh"):
        st.rerun()

st.title(APP_TITLE)
st.write(
    "Enter (x, y) pairs to fit an ordinary least-squares line. Hover a point on the chart to see "
    "its deviations from the means and its residual. Use the sidebar pages for step-by-step "
    "calculations and the chat assistant."
)

# ---- Data entry ----
left, right = st.columns([1, 2])
with left:
    st.subheader("Enter data points")
    st.text_input("X value", key="x_text")
    st.text_input("Y value", key="y_text")
    b1, b2, b3 = st.columns(3)
    b1.button("Add point", key="add_point", on_click=_add_point, type="primary")
    b2.button("Clear all", key="clear_points", on_click=_clear_points)
    b3.button("Example data", key="load_example", on_click=_load_example)
    if st.session_state.get("input_error"):
        st.error(st.session_state["input_error"])

points = snapshot()
summary = summarize(points)

with right:
    if not points:
        st.info("No data yet. Add a few points or load the example data.")
    elif isinstance(summary, RegressionSummary):
        k1, k2, k3, k4 = st.columns(4)
        k1.metric("Points", f"{summary.n:,}")
        k2.metric("Slope (b₁)", f"{summary.slope:.4f}", help=STAT_TOOLTIPS["slope"])
        k3.metric("Intercept (b₀)", f"{summary.intercept:.4f}", help=STAT_TOOLTIPS["intercept"])
        k4.metric("R²", "undefined" if summary.r2 is None else f"{summary.r2:.4f}", help=STAT_TOOLTIPS["R2"])
        st.markdown(f"**Regression equation:** `{format_equation(summary)}`")
        if summary.degeneracy is not None:
            st.warning(DEGENERACY_MESSAGES[summary.degeneracy.value])
    else:
        st.metric("Points", f"{summary.n:,}")
        st.warning(DEGENERACY_MESSAGES[summary.reason.value])

if not points:
    st.stop()

# ---- Chart & table ----
tab_chart, tab_table = st.tabs(["📊 Chart", "🧮 Table"])

with tab_chart:
    st.altair_chart(regression_chart(points, summary), width="stretch")
    st.caption(
        "Hover a point: dashed lines mark x̄ and ȳ, amber/green segments are the x and y deviations, "
        "purple is the residual y − ŷ."
    )

with tab_table:
    if isinstance(summary, RegressionSummary):
        df_table = calculation_table(summary)
        st.dataframe(styled_table(df_table), width="stretch")
        st.caption(" · ".join(f"**{group}**: {', '.join(cols)}" for group, cols in COLUMN_GROUPS.items()))
        st.caption("Σ row: SXX, SCP, SSres and SStot.")
    else:
        df_table = points_frame(points)
        df_table.index = [str(i) for i in range(1, len(points) + 1)]
        st.dataframe(df_table, width="stretch")

    c1, c2 = st.columns([1, 2])
    with c1:
        st.selectbox("Point to remove", list(range(1, len(points) + 1)), key="remove_idx")
        st.button("Remove point", key="remove_point", on_click=_remove_selected)
    with c2:
        st.download_button(
            "Download table as CSV",
            data=df_table.to_csv().encode("utf-8"),
            file_name="regression_table.csv",
            mime="text/csv",
        )
