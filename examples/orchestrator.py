#!/usr/bin/env python3
"""
Example: Agents as Capabilities

An orchestrator agent delegates to two specialist agents. Each delegation
is an independent call on the specialist; cancelling the orchestrator's run
also cancels any specialist call in flight.
"""
import asyncio

from llm_orchestrator import Agent, AgentConfig, CancellationToken, OpenAIProvider


async def main():
    model = OpenAIProvider(model="gpt-4o-mini")

    translator = Agent(
        model,
        name="translator",
        description="Translate text into English",
        preamble="Translate the user's text into English. Reply with the translation only.",
    )
    summarizer = Agent(
        model,
        name="summarizer",
        description="Summarize English text in one sentence",
        preamble="Summarize the user's text in a single sentence.",
    )

    orchestrator = Agent(
        model,
        name="orchestrator",
        preamble=(
            "You coordinate specialists. Translate non-English input first, "
            "then summarize it, then answer the user."
        ),
        capabilities=[translator.as_capability(), summarizer.as_capability()],
        config=AgentConfig(max_turns=5),
    )

    text = (
        "Le télescope spatial a photographié une galaxie lointaine dont la lumière "
        "a voyagé pendant plus de treize milliards d'années."
    )

    token = CancellationToken()
    answer = await orchestrator.prompt(f"Summarize this for me: {text}", cancellation_token=token, timeout=60)
    print(f"💬 {answer}")

    # Independent prompts run concurrently; answers keep input order
    questions = ["Bonjour", "Guten Morgen", "Buenos días"]
    answers = await translator.batch_prompt(questions, max_concurrency=2)
    for question, answer in zip(questions, answers):
        print(f"  {question} -> {answer}")

    await model.close()


if __name__ == "__main__":
    asyncio.run(main())
