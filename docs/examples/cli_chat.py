import asyncio
import os

from dotenv import load_dotenv
from openai import AsyncOpenAI

from mcp_chat_gateway.demo import weather_provider
from mcp_chat_gateway.gateway import ChatGateway
from mcp_chat_gateway.llm_core import ConversationHistory, FragmentKind
from mcp_chat_gateway.llm_impl import GenericOpenAI

# Load environment variables
load_dotenv()


async def main() -> None:
    """
    Chat with an OpenAI model that can call the built-in weather tool.
    """
    print("Welcome to the CLI Chat (OpenAI)!")

    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        print("Error: OPENAI_API_KEY not found in environment variables.")
        return

    llm = GenericOpenAI(
        client=AsyncOpenAI(api_key=api_key),
        model_name="gpt-4o-mini",
        sys_instruction="You are a helpful weather assistant.",
    )
    gateway = ChatGateway(llm, weather_provider().session_factory())
    history = ConversationHistory()

    print("\nStart chatting! Type 'exit' or 'quit' to stop.")
    async with gateway.open_tools() as registry:
        while True:
            user_input = input("\nYou: ").strip()
            if user_input.lower() in ["exit", "quit"]:
                print("Goodbye!")
                break

            if not user_input:
                continue

            print("Assistant: ", end="", flush=True)
            async for fragment in gateway.stream_turn(history, user_input, registry):
                if fragment.kind == FragmentKind.TEXT:
                    print(fragment.text, end="", flush=True)
                elif fragment.kind == FragmentKind.TOOL_CALL_REQUESTED:
                    print(f"\n[calling {fragment.tool_call.name}]", flush=True)
                elif fragment.kind == FragmentKind.ERROR:
                    print(f"\nError ({fragment.error.kind.value}): {fragment.error.message}")
            print()


if __name__ == "__main__":
    asyncio.run(main())
