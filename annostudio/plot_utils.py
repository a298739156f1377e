from __future__ import annotations

import pandas as pd
import plotly.graph_objects as go

from annostudio.models import DATASET_TYPES, CSVProgress

TYPE_COLORS = {
    "text": "#3b82f6",
    "image": "#22c55e",
    "audio": "#f97316",
    "multimodal": "#8b5cf6",
}


def _empty(title: str) -> go.Figure:
    fig = go.Figure()
    fig.update_layout(title=title, height=320)
    return fig


def plot_dataset_types(counts: dict[str, int], *, title: str = "Datasets by type") -> go.Figure:
    """
    Bar chart of dataset counts per type; known types always shown, in a fixed order.
    """
    order = list(DATASET_TYPES) + sorted(k for k in counts if k not in DATASET_TYPES)
    values = [int(counts.get(t, 0)) for t in order]
    if sum(values) == 0:
        return _empty(title)

    total = sum(values)
    subtitle = " | ".join(f"{t}: {v:,}" for t, v in zip(order, values) if v)
    full_title = f"{title}<br><sup style='color:gray;font-size:12px'>Total: {total:,} | {subtitle}</sup>"

    fig = go.Figure(
        data=[
            go.Bar(
                x=order,
                y=values,
                marker=dict(color=[TYPE_COLORS.get(t, "#64748b") for t in order]),
                hovertemplate="%{x}<br>Datasets: %{y:,}<extra></extra>",
            )
        ]
    )
    fig.update_layout(
        title=dict(text=full_title, x=0, xanchor="left"),
        xaxis_title="Dataset type",
        yaxis_title="Count",
        height=360,
        margin=dict(l=20, r=20, t=80, b=40),
        autosize=True,
        bargap=0.3,
    )
    fig.update_yaxes(rangemode="tozero", tickformat=",d", gridcolor="rgba(0,0,0,0.05)")
    return fig


def progress_frame(breakdown: list[CSVProgress]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"file": p.file_name or "(unnamed)", "completed": p.completed_rows, "total": p.total_rows} for p in breakdown],
        columns=["file", "completed", "total"],
    )


def plot_csv_progress(progress: pd.DataFrame, *, title: str = "Rows per import") -> go.Figure:
    """
    Stacked horizontal bars of completed vs. remaining rows per CSV import.

    Expects columns ``file``, ``completed``, ``total``.
    """
    if progress is None or len(progress) == 0:
        return _empty(title)
    df = progress.copy()
    df["completed"] = pd.to_numeric(df["completed"], errors="coerce").fillna(0).astype(int)
    df["total"] = pd.to_numeric(df["total"], errors="coerce").fillna(0).astype(int)
    df["remaining"] = (df["total"] - df["completed"]).clip(lower=0)

    fig = go.Figure(
        data=[
            go.Bar(
                y=df["file"],
                x=df["completed"],
                name="Completed",
                orientation="h",
                marker=dict(color="#22c55e"),
                hovertemplate="%{y}<br>Completed: %{x:,}<extra></extra>",
            ),
            go.Bar(
                y=df["file"],
                x=df["remaining"],
                name="Remaining",
                orientation="h",
                marker=dict(color="#e5e7eb"),
                hovertemplate="%{y}<br>Remaining: %{x:,}<extra></extra>",
            ),
        ]
    )
    fig.update_layout(
        title=dict(text=title, x=0, xanchor="left"),
        barmode="stack",
        height=max(200, 60 + 40 * len(df)),
        margin=dict(l=20, r=20, t=60, b=30),
        legend=dict(orientation="h", y=-0.15),
    )
    fig.update_xaxes(rangemode="tozero", tickformat=",d", gridcolor="rgba(0,0,0,0.05)")
    return fig
