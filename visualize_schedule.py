#!/usr/bin/env python3
"""Draw who-works-with-whom for one day, plus a staff load chart."""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.lines import Line2D
import networkx as nx

from pairing import pairing_graph
from roster_model import SESSIONS, Schedule, Staff, Student
from roster_records import load_schedule_csv, load_staff_csv, load_students_csv
from scheduler_config import resolve_data_path

SESSION_COLORS = {"AM": "#3182bd", "PM": "#e6550d"}
TRAINEE_COLOR = "#969696"
PAIR_COLOR = "#31a354"


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Visualize a day's assignments")
    ap.add_argument("--staff", default="staff.csv", type=Path)
    ap.add_argument("--students", default="students.csv", type=Path)
    ap.add_argument("--schedule", default="schedule_auto.csv", type=Path)
    ap.add_argument("--out-dir", default=Path("schedule_graphs"), type=Path, help="Directory for generated images")
    ap.add_argument("--out-prefix", default="schedule", type=str, help="Base filename prefix for images")
    ap.add_argument("--dpi", type=int, default=150)
    return ap.parse_args()


def build_graph(schedule: Schedule, staff: Iterable[Staff], students: Iterable[Student]) -> nx.MultiGraph:
    """Staff and student nodes; one edge per assignment, keyed by session."""
    students = list(students)
    graph = nx.MultiGraph()
    for m in staff:
        graph.add_node(f"staff:{m.id}", label=m.name, kind="staff", tier=m.tier)
    for s in students:
        graph.add_node(f"student:{s.id}", label=s.name, kind="student", tier=0)
    for a in schedule.assignments:
        graph.add_edge(f"staff:{a.staff_id}", f"student:{a.student_id}",
                       session=a.session, trainee=False, locked=a.locked)
    for a in schedule.trainee_assignments:
        graph.add_edge(f"staff:{a.staff_id}", f"student:{a.student_id}",
                       session=a.session, trainee=True, locked=True)
    for u, v in pairing_graph(students).edges:
        graph.add_edge(f"student:{u}", f"student:{v}", session="", trainee=False, pair=True, locked=False)
    for n in graph.nodes:
        graph.nodes[n].setdefault("label", n.split(":", 1)[1])
        graph.nodes[n].setdefault("kind", n.split(":", 1)[0])
    return graph


def _layout(graph: nx.MultiGraph) -> Dict[str, Tuple[float, float]]:
    staff_nodes = sorted(n for n in graph.nodes if graph.nodes[n]["kind"] == "staff")
    student_nodes = sorted(n for n in graph.nodes if graph.nodes[n]["kind"] == "student")
    pos: Dict[str, Tuple[float, float]] = {}
    for i, n in enumerate(staff_nodes):
        pos[n] = (0.0, -float(i))
    for i, n in enumerate(student_nodes):
        pos[n] = (1.0, -float(i) * max(1.0, len(staff_nodes) / max(1, len(student_nodes))))
    return pos


def _edge_style(data: dict) -> Tuple[str, str]:
    if data.get("pair"):
        return PAIR_COLOR, "dotted"
    if data.get("trainee"):
        return TRAINEE_COLOR, "dashed"
    return SESSION_COLORS.get(data.get("session"), "#555555"), "solid"


def render_graph(graph: nx.MultiGraph, out_path: Path, *, dpi: int, title: str) -> None:
    positions = _layout(graph)
    flat = nx.Graph(graph)
    fig, ax = plt.subplots(figsize=(11, max(6, 0.45 * graph.number_of_nodes())))
    colors = ["#fdd0a2" if graph.nodes[n]["kind"] == "staff" else "#c6dbef" for n in graph.nodes]
    nx.draw_networkx_nodes(flat, positions, node_color=colors, node_size=700,
                           edgecolors="#2f2f2f", linewidths=1.0, ax=ax)
    nx.draw_networkx_labels(flat, positions, labels={n: graph.nodes[n]["label"] for n in graph.nodes},
                            font_size=8, ax=ax)
    for u, v, data in graph.edges(data=True):
        color, style = _edge_style(data)
        nx.draw_networkx_edges(flat, positions, edgelist=[(u, v)], edge_color=color, style=style,
                               width=2.0 if data.get("locked") else 1.2, ax=ax)
    handles = [Line2D([0], [0], color=c, lw=2, label=s) for s, c in SESSION_COLORS.items()]
    handles.append(Line2D([0], [0], color=TRAINEE_COLOR, lw=2, linestyle="--", label="trainee"))
    handles.append(Line2D([0], [0], color=PAIR_COLOR, lw=2, linestyle=":", label="1:2 pair"))
    ax.legend(handles=handles, loc="upper right", fontsize=8)
    ax.set_title(title)
    ax.set_axis_off()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)


def plot_loads(schedule: Schedule, staff: Iterable[Staff], out_path: Path, *, dpi: int) -> bool:
    members = sorted((m for m in staff if m.active and m.can_do_direct_sessions()), key=lambda m: m.name)
    if not members:
        return False
    names = [m.name for m in members]
    fig, ax = plt.subplots(figsize=(max(8, 0.6 * len(members)), 4))
    bottom = [0] * len(members)
    for session in SESSIONS:
        counts = [1 if schedule.for_staff(m.id, session) else 0 for m in members]
        ax.bar(names, counts, bottom=bottom, color=SESSION_COLORS[session], label=session)
        bottom = [b + c for b, c in zip(bottom, counts)]
    ax.set_ylabel("Sessions booked")
    ax.set_title("Direct staff load")
    ax.set_ylim(0, len(SESSIONS) + 0.5)
    ax.tick_params(axis="x", rotation=45)
    ax.legend(loc="upper right", fontsize=8)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)
    return True


def render_all(schedule: Schedule, staff: List[Staff], students: List[Student],
               out_dir: Path, prefix: str, *, dpi: int = 150) -> List[Path]:
    outputs: List[Path] = []
    graph = build_graph(schedule, staff, students)
    graph_path = out_dir / f"{prefix}_graph.png"
    render_graph(graph, graph_path, dpi=dpi, title=f"Assignments {schedule.date}".strip())
    outputs.append(graph_path)
    load_path = out_dir / f"{prefix}_load.png"
    if plot_loads(schedule, staff, load_path, dpi=dpi):
        outputs.append(load_path)
    return outputs


def main() -> None:
    args = parse_args()
    staff = load_staff_csv(resolve_data_path(args.staff))
    students = load_students_csv(resolve_data_path(args.students))
    schedule = load_schedule_csv(resolve_data_path(args.schedule))
    for path in render_all(schedule, staff, students, args.out_dir, args.out_prefix, dpi=args.dpi):
        print(f"Wrote graph to {path}")


if __name__ == "__main__":
    main()
