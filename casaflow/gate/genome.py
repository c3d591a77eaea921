"""
Tool genome: per-user, per-tool rolling execution statistics.

Both functions are pure; they take the stored row (or None) and return the
fields to write.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

GENOME_EMA_ALPHA = 0.15
INITIAL_EMA_SUCCESS = 0.9
INITIAL_EMA_FAILURE = 0.5
PARAM_HISTORY = 5
ERROR_MAX_CHARS = 200


def _param_signature(params: Optional[Dict[str, Any]]) -> str:
    return ",".join(sorted((params or {}).keys()))


def apply_execution(
    existing: Optional[Dict[str, Any]],
    success: bool,
    duration_ms: float,
    params: Optional[Dict[str, Any]] = None,
    error: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Fold one execution into the genome row."""
    now = now or datetime.now(timezone.utc)
    signature = _param_signature(params)
    bucket = "success_params" if success else "failure_params"

    if existing:
        old_ema = float(existing.get("success_rate_ema") or 0.0)
        old_duration = float(existing.get("avg_duration_ms") or 0.0)
        ema = old_ema * (1 - GENOME_EMA_ALPHA) + (1.0 if success else 0.0) * GENOME_EMA_ALPHA
        avg_duration = old_duration * (1 - GENOME_EMA_ALPHA) + duration_ms * GENOME_EMA_ALPHA

        insights = dict(existing.get("parameter_insights") or {})
        history: List[str] = list(insights.get(bucket) or [])
        history.append(signature)
        insights[bucket] = history[-PARAM_HISTORY:]
        insights.setdefault("success_params", [])
        insights.setdefault("failure_params", [])

        fields: Dict[str, Any] = {
            "success_rate_ema": round(ema, 4),
            "avg_duration_ms": round(avg_duration, 2),
            "total_executions": int(existing.get("total_executions") or 0) + 1,
            "total_successes": int(existing.get("total_successes") or 0) + (1 if success else 0),
            "total_failures": int(existing.get("total_failures") or 0) + (0 if success else 1),
            "parameter_insights": insights,
        }
    else:
        fields = {
            "success_rate_ema": INITIAL_EMA_SUCCESS if success else INITIAL_EMA_FAILURE,
            "avg_duration_ms": round(float(duration_ms), 2),
            "total_executions": 1,
            "total_successes": 1 if success else 0,
            "total_failures": 0 if success else 1,
            "parameter_insights": {
                "success_params": [signature] if success else [],
                "failure_params": [] if success else [signature],
            },
        }

    if success:
        fields["last_success_at"] = now
    else:
        fields["last_error"] = error[:ERROR_MAX_CHARS] if error else None
        fields["last_error_at"] = now
    return fields


def update_co_occurrence(
    co_occurrence: Optional[Dict[str, Any]],
    tool_name: str,
    tool_names: List[str],
    success: bool,
) -> Dict[str, Any]:
    """Count how often *tool_name* ran alongside each other tool in a turn."""
    result = {k: dict(v) for k, v in (co_occurrence or {}).items()}
    for other in tool_names:
        if other == tool_name:
            continue
        entry = result.setdefault(other, {"count": 0, "successes": 0})
        entry["count"] += 1
        if success:
            entry["successes"] += 1
    return result
