#!/usr/bin/env python3
"""
Example: Agent With Capabilities

Demonstrates:
1. Declaring capabilities with the @capability decorator
2. Single-shot prompting versus a multi-turn capability loop
3. Inspecting the turn trace and token usage
4. Streaming the answer while capabilities still run
"""
import asyncio

from llm_orchestrator import Agent, AgentConfig, OpenAIProvider, capability, configure_logging


@capability
async def get_weather(location: str, unit: str = "celsius") -> dict:
    """Get current weather for a location.

    Args:
        location: City name
        unit: "celsius" or "fahrenheit"
    """
    print(f"  🔧 get_weather({location}, {unit})")
    return {"location": location, "temperature": 22, "unit": unit, "condition": "Sunny"}


@capability
def get_time(location: str) -> dict:
    """Get the current local time for a location."""
    print(f"  🔧 get_time({location})")
    return {"location": location, "time": "14:30"}


async def main():
    configure_logging()

    async with OpenAIProvider(model="gpt-4o-mini") as model:
        agent = Agent(
            model,
            name="assistant",
            preamble="You are a helpful assistant with access to weather and time tools.",
            capabilities=[get_weather, get_time],
            config=AgentConfig(max_turns=4, trace=True),
        )

        query = "What is the weather and time in Tokyo right now?"
        print(f"\n👤 User: {query}")

        # Single-shot: the model may ask for tools, but they are not run
        print(f"\n💬 Single-shot: {await agent.prompt(query, max_turns=1)!r}")

        response = await agent.run(query)
        print(f"\n💬 Final Answer: {response.content}")

        print("\n📜 Trace:")
        for record in response.trace:
            names = [inv.name for inv in record.response.invocations]
            print(f"  turn {record.index}: invocations={names or '-'}")
        print(f"\n📊 Usage: {response.usage.to_dict()}")

        print("\n🌊 Streaming: ", end="", flush=True)
        async for delta in agent.stream_prompt("And in Paris?"):
            print(delta, end="", flush=True)
        print()


if __name__ == "__main__":
    asyncio.run(main())
