import random

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from policies import POLICIES, get_policy
from reporting import SimulationLog, core_segments, core_trace_frame, thread_frame
from simulator import InterruptConfig, SimulationError, Simulator
from workload import DEFAULT_CORES, SCENARIOS, build_threads, generate_workload, parse_workload_text

POLICY_COLORS = {"fifo": "#1f77b4", "sjf": "#ff7f0e", "srtcf": "#2ca02c"}


def run_simulation(policy_name, entries, num_cores, interrupts, seed, max_ticks):
    log = SimulationLog(multiline=False, name=f"trace.dashboard.{policy_name}")
    sim = Simulator(num_cores=num_cores, scheduling_policy=get_policy(policy_name), interrupts=interrupts,
                    rng=random.Random(seed), log=log, max_ticks=max_ticks)
    sim.load_threads(build_threads(entries))
    result = sim.run()
    log.close()
    return sim, result, log


def gantt_figure(sim):
    segments = core_segments(sim.run_trace, sim.ticks_traced)
    fig = go.Figure()
    for row in segments.itertuples(index=False):
        fig.add_trace(go.Bar(
            x=[row.end - row.start],
            y=[f"Core {row.core}"],
            base=row.start,
            orientation='h',
            name=f"Thread {row.thread}",
            hovertemplate=f"Thread: {row.thread}<br>" +
                          f"Core: {row.core}<br>" +
                          f"Start: {row.start}<br>" +
                          f"End: {row.end}<extra></extra>"
        ))
    fig.update_layout(
        title=f"{sim.policy.label}: per-core timeline",
        xaxis_title="Tick",
        yaxis_title="Cores",
        height=150 + 40 * sim.cores.num_cores,
        showlegend=False,
        barmode='stack'
    )
    return fig


st.set_page_config(
    page_title="Multi-Core Scheduling Simulator",
    page_icon="⚙️",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main-header {
        font-size: 2.5rem;
        font-weight: bold;
        color: #1f77b4;
        text-align: center;
        margin-bottom: 2rem;
    }
</style>
""", unsafe_allow_html=True)

st.markdown('<h1 class="main-header">Multi-Core CPU Scheduling Simulator</h1>', unsafe_allow_html=True)

with st.sidebar:
    st.header("🔧 Configuration")
    scenario = st.selectbox("Workload:", SCENARIOS + ["manual"],
                            help="Preset workload, or type your own arrival/burst pairs")
    manual_text = ""
    if scenario == "manual":
        manual_text = st.text_area("One 'arrival burst' pair per line", value="0 5\n0 3\n2 6\n4 4")
        default_cores = 2
    else:
        default_cores = DEFAULT_CORES[scenario]
    num_threads = st.slider("Number of Threads", 5, 2000, 50,
                            help="Only used by the generated scenarios", disabled=scenario in ("small", "manual"))
    num_cores = st.slider("Number of Cores", 1, 16, default_cores)
    seed = st.number_input("Random Seed", value=42, help="Seed for workload generation and interrupts")
    max_ticks = st.number_input("Tick Ceiling", min_value=10, max_value=50000, value=5000)

    selected = st.multiselect("Policies", list(POLICIES), default=list(POLICIES),
                              format_func=lambda name: POLICIES[name].label)

    st.markdown("---")
    st.markdown("### ⚡ Random I/O Interrupts")
    interrupts_enabled = st.checkbox("Enable interrupts", value=False)
    io_pct = st.slider("Probability per tick (%)", 0, 100, 10, disabled=not interrupts_enabled)
    io_min, io_max = st.slider("I/O duration (ticks)", 1, 30, (2, 6), disabled=not interrupts_enabled)

    if st.button("Run Simulation", type="primary"):
        st.session_state.run_simulation = True

if st.session_state.get('run_simulation', False):
    st.session_state.run_simulation = False
    try:
        if scenario == "manual":
            entries = parse_workload_text(manual_text.splitlines())
        else:
            entries = generate_workload(scenario, num_threads=num_threads, seed=int(seed))
        interrupts = InterruptConfig(enabled=interrupts_enabled, probability_percent=io_pct,
                                     min_duration=io_min, max_duration=io_max)
        with st.spinner("Running simulation..."):
            st.session_state.runs = {
                name: run_simulation(name, entries, num_cores, interrupts, int(seed), int(max_ticks))
                for name in selected
            }
    except SimulationError as e:
        st.error(f"Invalid configuration: {e}")
        st.session_state.runs = {}

runs = st.session_state.get('runs', {})
if not runs:
    st.info("Choose a workload and policies in the sidebar, then press **Run Simulation**.")
else:
    st.subheader("📈 Policy Comparison")
    cols = st.columns(len(runs))
    for col, (name, (sim, result, _)) in zip(cols, runs.items()):
        with col:
            st.markdown(f"**{sim.policy.label}**")
            st.metric("Avg Wait", f"{result['avg_wait']:.2f}")
            st.metric("Avg Response", f"{result['avg_response']:.2f}")
            st.metric("Avg Turnaround", f"{result['avg_turnaround']:.2f}")
            st.metric("Avg Utilization", f"{result['avg_utilization']:.2%}")
            st.metric("Preemptions", result['total_preemptions'])
            st.metric("Interrupts", result['total_interrupts'])
            if result['num_completed'] < len(sim.threads):
                st.warning(f"{len(sim.threads) - result['num_completed']} threads unfinished at the tick ceiling")

    metrics = ["avg_wait", "avg_response", "avg_turnaround"]
    metric_labels = ["Average Wait", "Average Response", "Average Turnaround"]
    fig = go.Figure()
    for name, (sim, result, _) in runs.items():
        fig.add_trace(go.Bar(
            name=sim.policy.label,
            x=metric_labels,
            y=[result[m] for m in metrics],
            marker_color=POLICY_COLORS.get(name)
        ))
    fig.update_layout(
        title="Scheduling Metrics by Policy",
        xaxis_title="Metrics",
        yaxis_title="Ticks",
        barmode='group',
        height=400
    )
    st.plotly_chart(fig, use_container_width=True)

    summary = pd.DataFrame([
        {"Policy": sim.policy.label, "Completed": result["num_completed"], "Ticks": result["total_ticks"],
         "Context Switches": result["context_switches"]}
        for sim, result, _ in runs.values()
    ])
    st.dataframe(summary, use_container_width=True)

    for name, (sim, result, log) in runs.items():
        st.subheader(f"📅 {sim.policy.label}")
        st.plotly_chart(gantt_figure(sim), use_container_width=True)
        with st.expander("Per-thread results"):
            st.dataframe(thread_frame(sim.threads.values()), use_container_width=True)
        with st.expander("Per-core trace"):
            st.dataframe(core_trace_frame(sim.run_trace, sim.ticks_traced), use_container_width=True)
        with st.expander("Simulation log"):
            st.text("\n".join(log.lines[-500:]))
