"""Command-line interface for Nexi."""
import argparse
import asyncio
import json
from typing import List, Optional

from .app import Nexi, create_nexi, setup_logging
from .config import load_config
from .llm.provider import ProviderError
from .memory.records import MemoryRecord
from .modes import MODE_COMMANDS, get_mode_name

HELP_TEXT = """Commands:
  /help      Show this help
  /mode      Show the current mode
  /react     Quick, short replies
  /chat      Normal conversation
  /think     Slower, reflective replies
  (/quick, /normal and /deep also work; add a message for a one-off turn)
  /stats     Memory and state statistics
  /remember  Remember something: /remember <text>
  /search    Search memories: /search <query>
  /clear     Forget the current conversation (memories stay)
  /save      Extract memories from the conversation
  /quit      Leave
"""


def main(args: Optional[List[str]] = None) -> None:
    """Run the CLI.

    Args:
        args: Command-line arguments (for testing)
    """
    parser = argparse.ArgumentParser(description="Nexi CLI")
    parser.add_argument("--config", type=str, default=None, help="Path to a JSON config file")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Chat command
    chat_parser = subparsers.add_parser("chat", help="Start an interactive chat session")
    chat_parser.add_argument("--no-stream", action="store_true", help="Print replies only when complete")

    # Query command
    query_parser = subparsers.add_parser("query", help="Send a single message")
    query_parser.add_argument("query", type=str, help="The message to send")

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Show memory statistics")
    stats_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)"
    )

    # Search command
    search_parser = subparsers.add_parser("search", help="Search memories")
    search_parser.add_argument("query", type=str, help="What to look for")

    # Remember command
    remember_parser = subparsers.add_parser("remember", help="Store an explicit memory")
    remember_parser.add_argument("content", type=str, help="What to remember")
    remember_parser.add_argument("--importance", type=int, default=7, help="Importance 1-10 (default: 7)")

    # Maintenance commands
    subparsers.add_parser("decay", help="Forget stale, unimportant memories")
    dedup_parser = subparsers.add_parser("dedup", help="Merge duplicate memories")
    dedup_parser.add_argument("--dry-run", action="store_true", help="List duplicates without merging")

    # Parse arguments
    parsed_args = parser.parse_args(args)
    if parsed_args.command is None:
        parser.print_help()
        return

    config = load_config(parsed_args.config)
    setup_logging(config)

    try:
        nexi = create_nexi(config)
    except Exception as e:
        print(f"Error starting Nexi: {e}")
        return

    asyncio.run(_dispatch(nexi, parsed_args))


async def _dispatch(nexi: Nexi, parsed_args: argparse.Namespace) -> None:
    try:
        if parsed_args.command == "chat":
            await _run_chat(nexi, stream=not parsed_args.no_stream)
        elif parsed_args.command == "query":
            await _run_query(nexi, parsed_args.query)
        elif parsed_args.command == "stats":
            _show_stats(nexi, parsed_args.format)
        elif parsed_args.command == "search":
            await _search(nexi, parsed_args.query)
        elif parsed_args.command == "remember":
            await _remember(nexi, parsed_args.content, parsed_args.importance)
        elif parsed_args.command == "decay":
            _run_decay(nexi)
        elif parsed_args.command == "dedup":
            _run_dedup(nexi, parsed_args.dry_run)
    finally:
        await nexi.shutdown()


def _print_memories(memories: List[MemoryRecord]) -> None:
    if not memories:
        print("No memories.")
        return
    print(f"{len(memories)} found:")
    for i, memory in enumerate(memories, 1):
        print(f"  {i}. [{memory.type.value}] {memory.content}")


async def _run_chat(nexi: Nexi, stream: bool = True) -> None:
    """Run an interactive chat session."""
    print(f"Nexi v{nexi.config['app.version']}")
    if not await nexi.is_provider_available():
        print(f"Warning: no language model reachable at {nexi.config['llm.host']}")
    print("Type /help for commands, /quit to leave.")
    print("-" * 50)

    while True:
        try:
            user_input = input("You: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break

        if not user_input:
            continue

        try:
            if user_input.startswith("/"):
                if not await _handle_command(nexi, user_input):
                    print("Goodbye!")
                    break
                continue

            if stream:
                print("\nNexi: ", end="", flush=True)
                await nexi.chat(user_input, stream=True, on_token=lambda t: print(t, end="", flush=True))
                print("\n")
            else:
                reply = await nexi.chat(user_input)
                print(f"\nNexi: {reply}\n")

        except ProviderError as e:
            print(f"\nCouldn't reach the language model: {e}\n")
        except Exception as e:
            print(f"\nError: {str(e)}\n")


async def _handle_command(nexi: Nexi, user_input: str) -> bool:
    """Handle a slash command.

    Returns:
        False when the session should end
    """
    command, _, argument = user_input.partition(" ")
    command = command.lower()
    argument = argument.strip()

    if command in ("/quit", "/exit", "/q"):
        return False

    if command == "/help":
        print(HELP_TEXT)
    elif command == "/mode":
        print(f"\nMode: {get_mode_name(nexi.get_state().mode)}\n")
    elif command in MODE_COMMANDS and not argument:
        mode = MODE_COMMANDS[command]
        nexi.set_mode(mode)
        print(f"\n-> {get_mode_name(mode)}\n")
    elif command in MODE_COMMANDS:
        # Mode command with a message: a one-off turn in that mode
        reply = await nexi.chat(user_input)
        print(f"\nNexi: {reply}\n")
    elif command == "/stats":
        _show_stats(nexi, "text")
    elif command == "/remember":
        if not argument:
            print("\nUsage: /remember <text>\n")
        else:
            await nexi.remember(argument)
            print("\nRemembered.\n")
    elif command == "/search":
        if not argument:
            print("\nUsage: /search <query>\n")
        else:
            _print_memories(await nexi.search_memories(argument))
    elif command == "/clear":
        nexi.clear_conversation()
        print("\nCleared.\n")
    elif command == "/save":
        print("\nProcessing...")
        saved = await nexi.process_memories()
        print(f"{len(saved)} saved.\n" if saved else "Nothing new.\n")
    else:
        print(f"\nUnknown command: {command}\n")
    return True


async def _run_query(nexi: Nexi, query: str) -> None:
    """Send a single message and print the reply."""
    try:
        reply = await nexi.chat(query)
        print(f"Nexi: {reply}")
    except Exception as e:
        print(f"Error: {str(e)}")


def _show_stats(nexi: Nexi, format: str = "text") -> None:
    """Show memory statistics."""
    try:
        stats = nexi.get_memory_stats()
        state = nexi.get_state()

        if format == "json":
            stats = dict(stats, state={
                "mood": state.mood.value,
                "energy": state.energy.value,
                "mode": state.mode.value,
                "interaction_count": state.interaction_count,
            })
            print(json.dumps(stats, indent=2))
        else:
            print("\n=== Memory Statistics ===")
            print(f"Total memories: {stats.get('total', 0)}")
            print(f"Average importance: {stats.get('average_importance', 0.0):.1f}")
            print(f"With embeddings: {stats.get('with_embedding', 0)}")
            print("\nBy type:")
            for mem_type, count in stats.get('by_type', {}).items():
                print(f"  - {mem_type}: {count}")

            print("\n=== State ===")
            print(f"Mood: {state.mood.value} | Energy: {state.energy.value} | Mode: {get_mode_name(state.mode)}")
            print(f"Interactions: {state.interaction_count}")

    except Exception as e:
        print(f"Error getting statistics: {str(e)}")


async def _search(nexi: Nexi, query: str) -> None:
    try:
        _print_memories(await nexi.search_memories(query))
    except Exception as e:
        print(f"Error searching memories: {str(e)}")


async def _remember(nexi: Nexi, content: str, importance: int) -> None:
    try:
        record = await nexi.remember(content, importance=importance)
        print(f"Remembered ({record.id})")
    except Exception as e:
        print(f"Error storing memory: {str(e)}")


def _run_decay(nexi: Nexi) -> None:
    """Run memory decay and show results."""
    try:
        print("Forgetting stale memories...")
        print(f"Memories deleted: {nexi.run_memory_decay()}")
    except Exception as e:
        print(f"Error during decay: {str(e)}")


def _run_dedup(nexi: Nexi, dry_run: bool = False) -> None:
    """Merge (or just list) duplicate memories."""
    try:
        if dry_run:
            pairs = nexi.find_duplicate_memories()
            print(f"Duplicate pairs: {len(pairs)}")
            for pair in pairs:
                print(f"  {pair.original_id} ~ {pair.duplicate_id} ({pair.similarity:.2f})")
        else:
            print(f"Duplicates removed: {nexi.deduplicate_memories()}")
    except Exception as e:
        print(f"Error during deduplication: {str(e)}")


if __name__ == "__main__":
    main()
