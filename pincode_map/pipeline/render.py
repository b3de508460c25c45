"""Render payload handed to the map drawing layer."""

from __future__ import annotations

from typing import Sequence

from pincode_map.common.deterministic import plain_number
from pincode_map.common.models import ResolvedRecord
from pincode_map.pipeline.aggregate import FilterState, PipelineView, rounded_average, top_records
from pincode_map.pipeline.encode import VisualEncoder

# Darker stops for the marker gradient and its glow.
GRADIENT_SHADE = -22
GLOW_SHADE = -30


def encode_point(record: ResolvedRecord, encoder: VisualEncoder) -> dict:
    color = encoder.color(record.sales)
    return {
        "pincode": record.postal_code,
        "sales": plain_number(record.sales),
        "lat": record.lat,
        "lng": record.lon,
        "color": color.css(),
        "gradient_color": color.shade(GRADIENT_SHADE).css(),
        "glow_color": color.shade(GLOW_SHADE).css(),
        "radius": encoder.radius(record.sales),
        "label": encoder.magnitude_label(record.sales),
    }


def build_render_payload(
    view: PipelineView,
    filter_state: FilterState,
    *,
    resolved_count: int,
    currency_symbol: str,
    top_n: int = 5,
    limit_options: Sequence[int] = (),
) -> dict:
    encoder = VisualEncoder.for_records(view.display_set, currency_symbol=currency_symbol)
    stats = view.stats
    return {
        "filters": {
            "search_term": filter_state.search_term,
            "min_sales": filter_state.min_sales,
            "max_sales": filter_state.max_sales,
            "limit": filter_state.limit,
            "limit_options": list(limit_options),
        },
        "scale": {
            "min_sales": plain_number(encoder.min_sales),
            "max_sales": plain_number(encoder.max_sales),
        },
        "stats": {
            **stats.to_dict(),
            "resolved_count": resolved_count,
            "labels": {
                "total_sales": encoder.magnitude_label(stats.total_sales),
                "average_sales": encoder.magnitude_label(rounded_average(stats)),
                "max_sales": encoder.magnitude_label(stats.max_sales),
            },
        },
        "points": [encode_point(record, encoder) for record in view.display_set],
        "heat_buckets": [bucket.to_dict() for bucket in view.heat_buckets],
        "top": [
            {"pincode": record.postal_code, "label": encoder.magnitude_label(record.sales)}
            for record in top_records(view.display_set, top_n)
        ],
    }
