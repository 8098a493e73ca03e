#!/usr/bin/env python3
"""
Example: Structured Extraction

The extractor forces a single "submit" call whose arguments must match a
JSON Schema. Invalid submissions are sent back with the validation errors
until the repair budget runs out.
"""
import asyncio
from dataclasses import dataclass

from llm_orchestrator import ExtractionFailedError, Extractor, OpenAIProvider


@dataclass
class MovieReview:
    title: str
    rating: float
    summary: str
    pros: list[str]
    cons: list[str]


REVIEW_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "rating": {"type": "number", "minimum": 0, "maximum": 10},
        "summary": {"type": "string"},
        "pros": {"type": "array", "items": {"type": "string"}},
        "cons": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["title", "rating", "summary", "pros", "cons"],
    "additionalProperties": False,
}

TEXT = """
Just watched Dune: Part Two. Stunning visuals and a booming score, and the
desert battles are unforgettable. The middle drags a little and some side
characters get almost nothing to do. I'd give it an 8.5.
"""


async def main():
    async with OpenAIProvider(model="gpt-4o-mini") as model:
        extractor = Extractor(model, REVIEW_SCHEMA, name="reviews", output_type=MovieReview, max_repair_attempts=2)

        try:
            result = await extractor.extract_with_result(TEXT)
        except ExtractionFailedError as exc:
            print(f"❌ Extraction failed after {exc.attempts} attempts: {exc.errors}")
            return

        review = result.data
        print(f"🎬 {review.title} ({review.rating}/10)")
        print(f"   {review.summary}")
        print(f"   + {', '.join(review.pros)}")
        print(f"   - {', '.join(review.cons)}")
        print(f"   repairs needed: {result.repair_attempts}")


if __name__ == "__main__":
    asyncio.run(main())
