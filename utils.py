import plotly.graph_objects as go

from labels import MARAUDE_STATUSES, status_label


def calculate_stats(maraudes):
    """Dashboard counters for a list of maraudes"""
    return {
        "total_maraudes": len(maraudes),
        "active_maraudes": sum(1 for m in maraudes if m.status in ("planned", "in_progress")),
        "completed_maraudes": sum(1 for m in maraudes if m.status == "completed"),
        "total_beneficiaries": sum(m.beneficiaries_helped or 0 for m in maraudes),
    }


def create_status_chart(maraudes):
    """Bar chart of maraudes per status"""
    statuses = list(MARAUDE_STATUSES)
    counts = [sum(1 for m in maraudes if m.status == s) for s in statuses]

    fig = go.Figure(go.Bar(
        x=[status_label(s) for s in statuses],
        y=counts,
        marker=dict(color=[MARAUDE_STATUSES[s]["color"] for s in statuses]),
    ))
    fig.update_layout(
        title="Maraudes par statut",
        yaxis_title="Nombre",
        showlegend=False,
    )
    return fig


def create_route_plot(points):
    """Create a Plotly figure showing the walking route, points as (lat, lon)"""
    lats, lons = zip(*points)

    fig = go.Figure()

    fig.add_trace(go.Scatter(
        x=lons,
        y=lats,
        mode='lines+markers',
        name='Parcours',
        line=dict(color='blue', width=2),
        marker=dict(size=6)
    ))

    fig.add_trace(go.Scatter(
        x=[lons[0]],
        y=[lats[0]],
        mode='markers',
        name='Départ',
        marker=dict(size=12, color='green', symbol='star')
    ))

    fig.add_trace(go.Scatter(
        x=[lons[-1]],
        y=[lats[-1]],
        mode='markers',
        name='Arrivée',
        marker=dict(size=12, color='red', symbol='square')
    ))

    fig.update_layout(
        title="Aperçu du parcours",
        xaxis_title="Longitude",
        yaxis_title="Latitude",
        showlegend=True,
        yaxis_scaleanchor="x",
    )

    return fig
