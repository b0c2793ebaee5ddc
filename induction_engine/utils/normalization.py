# induction_engine/utils/normalization.py
import re
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from induction_engine.core.errors import DataIntegrityError
from induction_engine.models.trainset import Trainset

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

# Field aliases accepted from the dashboard payload shape, per section
_SECTION_ALIASES = {
    "stabling_bay": "stabling",
}
_FIELD_ALIASES = {
    "job_cards": {"open": "open_count", "total": "total_count", "critical": "critical_count"},
    "branding": {"exposure": "exposure_achieved", "target": "exposure_target"},
    "stabling": {
        "current": "current_bay",
        "optimal": "optimal_bay",
        "shunting_time": "shunting_time_minutes",
    },
}


def to_snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _normalize_keys(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {to_snake_case(str(k)): _normalize_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_normalize_keys(v) for v in value]
    return value


def normalize_trainset_data(trainset: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalize a raw trainset document to the engine's field names.

    Accepts snake_case documents as well as the dashboard's camelCase shape
    (jobCards.open, stablingBay.shuntingTime, ...). Values are not coerced here;
    type and range checks happen in the Trainset model.
    """
    normalized = _normalize_keys(dict(trainset))

    for alias, section in _SECTION_ALIASES.items():
        if alias in normalized and section not in normalized:
            normalized[section] = normalized.pop(alias)

    for section, aliases in _FIELD_ALIASES.items():
        data = normalized.get(section)
        if not isinstance(data, dict):
            continue
        for alias, field in aliases.items():
            if alias in data and field not in data:
                data[field] = data.pop(alias)

    # Dashboard sends the trainset number under "number"
    if "trainset_id" not in normalized and "number" in normalized:
        normalized["trainset_id"] = normalized["number"]

    return normalized


def trainset_id_of(raw: Any) -> Optional[str]:
    if isinstance(raw, Mapping):
        value = raw.get("trainset_id")
        if value is None:
            value = raw.get("trainsetId", raw.get("number"))
        if value is not None and str(value).strip():
            return str(value)
    return None


def parse_trainset(raw: Any) -> Trainset:
    """Validate one snapshot entry into a Trainset.

    Raises DataIntegrityError naming the trainset (when identifiable) and the
    first offending field.
    """
    if isinstance(raw, Trainset):
        return raw

    trainset_id = trainset_id_of(raw)
    if not isinstance(raw, Mapping):
        raise DataIntegrityError(
            f"Trainset snapshot must be a mapping, got {type(raw).__name__}"
        )
    if trainset_id is None:
        raise DataIntegrityError("Missing required field", field="trainset_id")

    try:
        return Trainset.model_validate(normalize_trainset_data(raw))
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        message = first.get("msg", "invalid value")
        if first.get("type") == "missing":
            message = "Missing required field"
        raise DataIntegrityError(message, trainset_id=trainset_id, field=field) from e
