"""
Tests for visualization.py plotting functions.
"""

from pathlib import Path

from commsgraph.visualization import plot_communications_by_account, plot_relationship_graph

ACTIVITY = [
    {"account_id": 1, "account_type": "PHONE", "identifier": "+15550100001", "device_id": "dev1", "communications_count": 3},
    {"account_id": 2, "account_type": "EMAIL", "identifier": "bob@x.com", "device_id": "dev1", "communications_count": 2},
    {"account_id": 4, "account_type": "PHONE", "identifier": "+15550100003", "device_id": "dev2", "communications_count": 1},
]

EDGES = [
    ("+15550100001", "bob@x.com", 2),
    ("+15550100001", "+15550100002", 1),
]


class TestPlotCommunicationsByAccount:
    def test_one_trace_per_device(self):
        fig = plot_communications_by_account(ACTIVITY)
        assert [trace.name for trace in fig.data] == ["dev1", "dev2"]
        assert list(fig.data[0].y) == [3, 2]
        assert list(fig.data[0].x) == ["PHONE:+15550100001", "EMAIL:bob@x.com"]

    def test_empty_activity(self):
        fig = plot_communications_by_account([])
        assert len(fig.data) == 0

    def test_writes_html(self, tmp_path: Path):
        output = tmp_path / "activity.html"
        plot_communications_by_account(ACTIVITY, str(output))
        assert output.exists()
        assert "<html" in output.read_text().lower()


class TestPlotRelationshipGraph:
    def test_edges_and_nodes(self):
        fig = plot_relationship_graph(EDGES)
        # One line trace per edge plus one marker trace for the nodes
        assert len(fig.data) == len(EDGES) + 1
        assert list(fig.data[-1].text) == ["+15550100001", "bob@x.com", "+15550100002"]

    def test_empty_graph(self):
        fig = plot_relationship_graph([])
        assert len(fig.data) == 1
        assert len(fig.data[0].x) == 0

    def test_writes_html(self, tmp_path: Path):
        output = tmp_path / "graph.html"
        plot_relationship_graph(EDGES, str(output))
        assert output.exists()
