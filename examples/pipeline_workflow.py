#!/usr/bin/env python3
"""
Example: Pipelines

Demonstrates:
1. Retrieval-augmented prompting with a parallel join
2. Routing support tickets by an agent's classification
3. Reporting step failures with try_call
"""
import asyncio

from llm_orchestrator import (
    Agent,
    Document,
    InMemoryVectorIndex,
    OpenAIEmbedder,
    OpenAIProvider,
    StepFailedError,
    pipeline,
)

DOCUMENTS = [
    Document(id="refunds", text="Refunds are issued within 5 business days of approval."),
    Document(id="shipping", text="Standard shipping takes 3 to 7 days."),
    Document(id="passwords", text="Reset your password from the account settings page."),
]


def format_prompt(pair) -> str:
    question, hits = pair
    context = "\n".join(f"- {hit.text}" for hit in hits)
    return f"Answer using only this context:\n{context}\n\nQuestion: {question}"


async def main():
    model = OpenAIProvider(model="gpt-4o-mini")
    index = InMemoryVectorIndex(OpenAIEmbedder())
    await index.add(DOCUMENTS)

    # --- 1. RAG: keep the question and its top documents side by side ---
    answerer = Agent(model, name="answerer", preamble="Be concise.")
    rag = (
        pipeline.new()
        .parallel(pipeline.passthrough(), pipeline.lookup(index, k=2))
        .map(format_prompt)
        .prompt(answerer)
        .build()
    )
    print("💬", await rag.call("How long do refunds take?"))

    # --- 2. Routing ---
    classifier = Agent(
        model,
        name="classifier",
        preamble="Classify the ticket. Reply with exactly one word: billing or technical.",
        temperature=0.0,
    )
    billing = Agent(model, name="billing", preamble="You are a billing specialist.")
    technical = Agent(model, name="technical", preamble="You are a technical support engineer.")
    classify = pipeline.new().prompt(classifier).map(str.lower).build()
    router = pipeline.route(classify, {"billing": billing, "technical": technical})

    tickets = ["I was charged twice this month", "The app crashes when I log in"]
    for ticket, answer in zip(tickets, await router.batch_call(tickets, max_concurrency=2)):
        print(f"🎫 {ticket}\n   {answer}")

    # --- 3. Step failures ---
    def parse_amount(text: str) -> float:
        return float(text.strip().lstrip("$"))

    parser = pipeline.new().try_map(parse_amount).map(lambda amount: round(amount * 1.2, 2)).build()
    print("💵", await parser.call("$10"))
    try:
        await parser.try_call("ten dollars")
    except StepFailedError as exc:
        print(f"⚠️  step {exc.step!r} failed: {exc.cause}")

    await model.close()


if __name__ == "__main__":
    asyncio.run(main())
