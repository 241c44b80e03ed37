import logging

import matplotlib.pyplot as plt
import networkx as nx
from matplotlib.lines import Line2D
from matplotlib.patches import Patch

from ..utils.graph import build_dependency_graph

logger = logging.getLogger(__name__)

DEPENDENCY_LABELS = {
    "finish_to_start": "FS",
    "start_to_start": "SS",
    "finish_to_finish": "FF",
    "start_to_finish": "SF",
}


def _layered_layout(G):
    """Left-to-right layout by topological generation."""
    pos = {}
    for x, generation in enumerate(nx.topological_generations(G)):
        for y, node in enumerate(sorted(generation, key=str)):
            pos[node] = (x, -y)
    return pos


def create_network_diagram(scheduler, filename=None, show=True, layout="layered"):
    """
    Visualize the task dependency network with the critical path highlighted.

    Args:
        scheduler: The ProjectScheduler instance
        filename: Optional filename to save the diagram
        show: Whether to display the diagram (default: True)
        layout: Network layout type ('layered', 'spring', 'circular' or 'shell')

    Returns:
        The matplotlib figure
    """
    tasks = scheduler.tasks
    result = scheduler.critical_path or scheduler.calculate_critical_path()
    critical = set(result.critical_ids) if result is not None else set()

    G = build_dependency_graph(tasks) if result is not None else nx.DiGraph()
    if result is None:
        # Cyclic links cannot be laid out in generations; draw the tasks alone
        G.add_nodes_from(tasks)
        layout = "circular"

    fig = plt.figure(figsize=(12, 8))

    node_colors = []
    node_sizes = []
    for node in G.nodes():
        task = tasks[node]
        if node in critical:
            node_colors.append("red")
        elif task.status == "completed":
            node_colors.append("lightgreen")
        else:
            node_colors.append("skyblue")
        node_sizes.append(300 if task.milestone else 600)

    edge_colors = []
    edge_widths = []
    for u, v in G.edges():
        if u in critical and v in critical:
            edge_colors.append("red")
            edge_widths.append(2.5)
        else:
            edge_colors.append("gray")
            edge_widths.append(1.0)

    if layout == "layered" and result is not None:
        pos = _layered_layout(G)
    elif layout == "circular":
        pos = nx.circular_layout(G)
    elif layout == "shell":
        pos = nx.shell_layout(G)
    else:
        pos = nx.spring_layout(G, seed=42)

    nx.draw_networkx_nodes(
        G,
        pos,
        node_color=node_colors,
        node_size=node_sizes,
        edgecolors="black",
    )
    nx.draw_networkx_edges(
        G,
        pos,
        edge_color=edge_colors,
        width=edge_widths,
        arrowsize=15,
        arrowstyle="-|>",
        connectionstyle="arc3,rad=0.1",
    )

    edge_labels = {}
    for u, v, data in G.edges(data=True):
        label = DEPENDENCY_LABELS.get(data["type"].value, "")
        if data["lag"]:
            label += f"{data['lag']:+d}d"
        if label != "FS":
            edge_labels[(u, v)] = label
    if edge_labels:
        nx.draw_networkx_edge_labels(G, pos, edge_labels=edge_labels, font_size=8)

    labels = {}
    for node in G.nodes():
        task = tasks[node]
        status_info = ""
        if task.status == "completed":
            status_info = " [done]"
        elif task.status == "in_progress":
            status_info = f" [{task.progress}%]"
        float_info = ""
        if result is not None and node not in critical:
            float_info = f"\nfloat {result.floats[node]}d"
        labels[node] = f"{task.id}: {task.title}{status_info}{float_info}"

    label_pos = {k: (v[0], v[1] - 0.02) for k, v in pos.items()}
    bbox_props = dict(boxstyle="round,pad=0.3", fc="white", ec="gray", alpha=0.8)
    for node, label in labels.items():
        plt.text(
            label_pos[node][0],
            label_pos[node][1],
            label,
            horizontalalignment="center",
            bbox=bbox_props,
            fontsize=9,
        )

    legend_elements = [
        Patch(facecolor="red", edgecolor="black", label="Critical Task"),
        Patch(facecolor="lightgreen", edgecolor="black", label="Completed Task"),
        Patch(facecolor="skyblue", edgecolor="black", label="Task with Float"),
        Line2D([0], [0], color="red", lw=2.5, label="Critical Path"),
    ]
    plt.legend(handles=legend_elements, loc="best", fontsize=10)

    plt.title("Construction Schedule Network Diagram", fontsize=14)
    plt.axis("off")
    plt.tight_layout()

    if filename:
        plt.savefig(filename, dpi=300, bbox_inches="tight")
        logger.info("Network diagram saved to %s", filename)

    if show:
        plt.show()

    return fig
