"""
Visualization functions for the communications graph.

Provides plotting capabilities using plotly. Figures are written as
standalone HTML when an output file is given.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

import plotly.graph_objects as go  # type: ignore[import-untyped]

from commsgraph.utils import format_account

logger = logging.getLogger(__name__)


def _write(fig: go.Figure, output_file: Optional[str]) -> None:
    if output_file:
        fig.write_html(output_file)
        logger.info(f"Wrote plot to {output_file}")


def plot_communications_by_account(
    activity: List[Dict[str, Any]], output_file: Optional[str] = None
) -> go.Figure:
    """
    Bar chart of communication counts per account, one trace per device.

    Args:
        activity: Rows as returned by get_device_activity.
        output_file: Optional HTML file path to save the plot.

    Returns:
        The plotly Figure.
    """
    by_device: Dict[str, Tuple[List[str], List[int]]] = {}
    for row in activity:
        labels, counts = by_device.setdefault(row["device_id"], ([], []))
        labels.append(format_account(row["account_type"], row["identifier"]))
        counts.append(row["communications_count"])

    fig = go.Figure()
    for device_id, (labels, counts) in sorted(by_device.items()):
        fig.add_trace(go.Bar(name=device_id, x=labels, y=counts))

    fig.update_layout(
        title="Communications by account",
        xaxis_title="Account",
        yaxis_title="Communications",
        barmode="group",
    )
    _write(fig, output_file)
    return fig


def plot_relationship_graph(
    edges: List[Tuple[str, str, int]], output_file: Optional[str] = None
) -> go.Figure:
    """
    Relationship graph with accounts placed on a circle.

    Args:
        edges: (account, account, weight) tuples as returned by
            get_relationship_edges.
        output_file: Optional HTML file path to save the plot.

    Returns:
        The plotly Figure.
    """
    nodes = list(dict.fromkeys(node for a, b, _ in edges for node in (a, b)))
    positions = {
        node: (math.cos(2 * math.pi * i / len(nodes)), math.sin(2 * math.pi * i / len(nodes)))
        for i, node in enumerate(nodes)
    }

    fig = go.Figure()
    for a, b, weight in edges:
        (x0, y0), (x1, y1) = positions[a], positions[b]
        fig.add_trace(
            go.Scatter(
                x=[x0, x1],
                y=[y0, y1],
                mode="lines",
                line={"width": min(1 + weight, 10)},
                hoverinfo="text",
                text=f"{a} ↔ {b}: {weight}",
                showlegend=False,
            )
        )

    fig.add_trace(
        go.Scatter(
            x=[positions[n][0] for n in nodes],
            y=[positions[n][1] for n in nodes],
            mode="markers+text",
            text=nodes,
            textposition="top center",
            marker={"size": 12},
            showlegend=False,
        )
    )
    fig.update_layout(
        title="Account relationships",
        xaxis={"visible": False},
        yaxis={"visible": False},
    )
    _write(fig, output_file)
    return fig
