"""Chat fine-tuning JSONL records built from stored samples."""
from __future__ import annotations

import json
from typing import Iterable

from finetune.models import Sample

SYSTEM_INSTRUCTION = (
    "You are a specialized forensic report generator. "
    "Provide thorough, professional, consistent content."
)
USER_INSTRUCTION = (
    "Generate a complete forensic engineering report based on the user's inputs and data."
)


def to_training_record(text: str) -> dict:
    return {
        "messages": [
            {"role": "system", "content": SYSTEM_INSTRUCTION},
            {"role": "user", "content": USER_INSTRUCTION},
            {"role": "assistant", "content": text},
        ]
    }


def encode_training_records(samples: Iterable[Sample]) -> str:
    """One JSON object per line, joined with ``\\n`` and no trailing newline."""
    return "\n".join(
        json.dumps(to_training_record(sample.text or ""), ensure_ascii=False)
        for sample in samples
    )


def decode_training_records(content: str) -> list[dict]:
    # split on "\n" only: str.splitlines() also breaks on U+2028 and friends,
    # which json.dumps leaves unescaped when ensure_ascii=False.
    return [json.loads(line) for line in content.split("\n") if line.strip()]


def assistant_texts(content: str) -> list[str]:
    """Assistant targets, in file order."""
    texts: list[str] = []
    for record in decode_training_records(content):
        for message in record.get("messages", []):
            if message.get("role") == "assistant":
                texts.append(message.get("content", ""))
    return texts
