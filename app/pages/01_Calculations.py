import streamlit as st

from app.utils.glossary import DEGENERACY_MESSAGES, STAT_TOOLTIPS
from app.utils.regression import RegressionSummary, format_equation, summarize
from app.utils.state import configure_logging, init_session, snapshot
from app.utils.tables import TERM_COLUMNS, calculation_table, styled_table

st.set_page_config(page_title="Calculations", layout="wide")
configure_logging()
init_session()

st.title("Calculations")

points = snapshot()
summary = summarize(points)

if not isinstance(summary, RegressionSummary):
    st.info(DEGENERACY_MESSAGES[summary.reason.value])
    st.stop()

st.subheader("Regression equation")
st.markdown(f"### `{format_equation(summary)}`")

tab_slope, tab_intercept, tab_r2 = st.tabs(["Slope (b₁)", "Intercept (b₀)", "R²"])

with tab_slope:
    st.latex(r"b_1 = \frac{SCP}{SXX}")
    st.caption(STAT_TOOLTIPS["SCP"])
    st.latex(r"SCP = \sum(x - \bar{x})(y - \bar{y}) = \sum xy - \frac{\sum x \sum y}{n}")
    st.latex(
        rf"SCP = {summary.sum_xy:.4f} - \frac{{{summary.sum_x:.4f} \times {summary.sum_y:.4f}}}{{{summary.n}}}"
        rf" = {summary.scp:.4f}"
    )
    st.caption(STAT_TOOLTIPS["SXX"])
    st.latex(r"SXX = \sum(x - \bar{x})^2 = \sum x^2 - \frac{(\sum x)^2}{n}")
    st.latex(
        rf"SXX = {summary.sum_xx:.4f} - \frac{{{summary.sum_x:.4f}^2}}{{{summary.n}}} = {summary.sxx:.4f}"
    )
    st.latex(rf"b_1 = \frac{{{summary.scp:.4f}}}{{{summary.sxx:.4f}}} = {summary.slope:.4f}")

with tab_intercept:
    st.caption(STAT_TOOLTIPS["intercept"])
    st.latex(r"b_0 = \bar{y} - b_1\bar{x}")
    st.latex(
        rf"b_0 = {summary.mean_y:.4f} - ({summary.slope:.4f} \times {summary.mean_x:.4f})"
        rf" = {summary.intercept:.4f}"
    )

with tab_r2:
    st.caption(STAT_TOOLTIPS["R2"])
    st.latex(r"R^2 = 1 - \frac{SS_{res}}{SS_{tot}}")
    st.caption(STAT_TOOLTIPS["SSres"])
    st.latex(rf"SS_{{res}} = \sum(y - \hat{{y}})^2 = {summary.ss_res:.4f}")
    st.caption(STAT_TOOLTIPS["SStot"])
    st.latex(rf"SS_{{tot}} = \sum(y - \bar{{y}})^2 = {summary.ss_tot:.4f}")
    if summary.r2 is None:
        st.warning(DEGENERACY_MESSAGES[summary.degeneracy.value])
    else:
        st.latex(
            rf"R^2 = 1 - \frac{{{summary.ss_res:.4f}}}{{{summary.ss_tot:.4f}}} = {summary.r2:.4f}"
        )
        if summary.correlation is not None:
            st.caption(f"Correlation coefficient r = {summary.correlation:.4f} (r² = {summary.correlation ** 2:.4f}).")

st.subheader("Where the sums come from")
term = st.selectbox(
    "Highlight a term in the table",
    ["None", *TERM_COLUMNS],
    key="highlight_term",
    help="Each term is the Σ of one table column.",
)
st.dataframe(
    styled_table(calculation_table(summary), None if term == "None" else term),
    width="stretch",
)
if term != "None":
    st.caption(f"{term} = Σ {TERM_COLUMNS[term]}")
