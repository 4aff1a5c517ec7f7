"""
Query classification.

The completion API is asked for a strict JSON object describing which dataset,
column(s) and value answer the user's question. Anything that does not decode
into a ``Classification`` counts as "no confidence" and sends the request down
the fallback path.
"""

import asyncio
import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

from openai import OpenAIError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .datasets import Dataset, describe_catalogue, get_dataset
from .errors import RequestTimeoutError
from .llm import completion_text

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.4

_RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "dataset_query",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "dataset": {"type": ["string", "null"], "description": "CSV filename from the list, or null"},
                "columns": {"type": "array", "items": {"type": "string"}},
                "value": {"type": ["string", "null"], "description": "Value to search for, e.g. a SKU"},
                "confidence": {"type": "number", "description": "0.0 to 1.0"},
            },
            "required": ["dataset", "columns", "value", "confidence"],
            "additionalProperties": False,
        },
    },
}

_SYSTEM_PROMPT = """You classify user questions so structured data can be retrieved from a set of CSV datasets.

Available datasets:
{catalogue}

Your task:
- Identify which dataset should be queried.
- Identify the column(s) where the value should be searched, using the exact column names listed.
- Extract the search value (e.g. SKU ID, purchase order number).
- Rate your confidence from 0.0 to 1.0.

Example: {{"dataset": "warehouseData.csv", "columns": ["SKU"], "value": "10271", "confidence": 0.9}}

If the question is not about any of these datasets, return:
{{"dataset": null, "columns": [], "value": null, "confidence": 0.0}}"""


class Classification(BaseModel):
    model_config = ConfigDict(extra="ignore")

    dataset: Optional[str] = None
    columns: list[str] = Field(default_factory=list)
    value: Optional[str] = None
    confidence: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _merge_legacy_column(cls, data: Any) -> Any:
        # Older prompts answered with a single "column"; fold it into "columns".
        if not isinstance(data, dict):
            return data
        data = dict(data)
        legacy = data.pop("column", None)
        columns = data.get("columns")
        if columns is None:
            columns = []
        elif isinstance(columns, str):
            columns = [columns]
        if isinstance(legacy, str) and legacy.strip() and legacy not in columns:
            columns = [*columns, legacy]
        data["columns"] = columns
        return data

    @field_validator("value", mode="before")
    @classmethod
    def _stringify_value(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def _default_confidence(cls, v: Any) -> Any:
        return 0.0 if v is None else v

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, v: float) -> float:
        if not math.isfinite(v):
            return 0.0
        return min(1.0, max(0.0, v))

    @classmethod
    def empty(cls) -> "Classification":
        return cls()


@dataclass(frozen=True)
class LookupPlan:
    dataset: Dataset
    columns: tuple
    value: str


def parse_classification(content: Optional[str]) -> Classification:
    if not content or not content.strip():
        return Classification.empty()
    try:
        return Classification.model_validate(json.loads(content))
    except ValidationError as e:
        logger.warning("Classification reply did not match schema: %s", e.errors(include_url=False))
        return Classification.empty()
    except ValueError as e:
        logger.warning("Classification reply was not JSON: %s", e)
        return Classification.empty()


def resolve(classification: Classification, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD) -> Optional[LookupPlan]:
    """Check a classification against the allow-list; None means use the fallback."""
    if classification.confidence < threshold:
        logger.info("Classification confidence %.2f below %.2f", classification.confidence, threshold)
        return None

    dataset = get_dataset(classification.dataset)
    if dataset is None:
        logger.info("Classification named no known dataset: %r", classification.dataset)
        return None

    value = (classification.value or "").strip()
    if not value:
        logger.info("Classification for %s carried no search value", dataset.filename)
        return None

    columns = dataset.valid_columns(classification.columns)
    if not columns:
        logger.info("No valid columns for %s in %r", dataset.filename, classification.columns)
        return None

    return LookupPlan(dataset=dataset, columns=tuple(columns), value=value)


class QueryClassifier:
    def __init__(self, client, model: str, timeout: float = 10.0):
        self._client = client
        self._model = model
        self._timeout = timeout

    def _messages(self, user_message: str) -> list[dict]:
        return [
            {"role": "system", "content": _SYSTEM_PROMPT.format(catalogue=describe_catalogue())},
            {"role": "user", "content": user_message},
        ]

    async def classify(self, user_message: str) -> Classification:
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._model,
                    messages=self._messages(user_message),
                    response_format=_RESPONSE_FORMAT,
                    temperature=0,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            raise RequestTimeoutError(f"Classification timed out after {self._timeout:g}s") from None
        except OpenAIError as e:
            logger.warning("Classification call failed: %s", e)
            return Classification.empty()

        result = parse_classification(completion_text(response))
        logger.info(
            "Classified: dataset=%s columns=%s confidence=%.2f",
            result.dataset,
            result.columns,
            result.confidence,
        )
        return result
