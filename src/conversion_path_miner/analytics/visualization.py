"""Visualization helpers using Plotly."""
from __future__ import annotations

from collections import Counter
from typing import Iterable

import plotly.graph_objects as go

from ..mining.patterns import FULL_SEQUENCE, TOP_ITEM, PathAnalysisRow


def sankey_from_rows(rows: Iterable[PathAnalysisRow]) -> go.Figure:
    """Create a Sankey diagram of the transitions inside full-sequence rows.

    Nodes are keyed by step position so a path that revisits an item does not
    create a cycle. Links are weighted by the number of matching users.
    """

    transitions = Counter()
    for row in rows:
        if row.analysis_type != FULL_SEQUENCE:
            continue
        steps = [f"{position}. {token}" for position, token in enumerate(row.item_sequence, start=1)]
        for a, b in zip(steps, steps[1:]):
            transitions[(a, b)] += row.matching_user_count

    labels = sorted({node for edge in transitions for node in edge})
    label_to_index = {label: idx for idx, label in enumerate(labels)}

    sources = [label_to_index[a] for a, _ in transitions]
    targets = [label_to_index[b] for _, b in transitions]
    values = list(transitions.values())

    link = dict(source=sources, target=targets, value=values)
    node = dict(label=labels, pad=15, thickness=20)

    fig = go.Figure(data=[go.Sankey(link=link, node=node)])
    fig.update_layout(title="Paths Before Conversion")
    return fig


def top_items_bar(rows: Iterable[PathAnalysisRow]) -> go.Figure:
    """Bar chart of the share of converters who saw each top item."""

    top = sorted((row for row in rows if row.analysis_type == TOP_ITEM), key=lambda row: row.rank)
    fig = go.Figure(
        data=[
            go.Bar(
                x=[row.item_sequence[0] for row in top],
                y=[row.pct_of_population for row in top],
                text=[row.matching_user_count for row in top],
            )
        ]
    )
    fig.update_layout(
        title="Most Seen Items Before Conversion",
        xaxis_title="Item",
        yaxis_title="% of converters",
        yaxis=dict(range=[0, 100]),
    )
    return fig
