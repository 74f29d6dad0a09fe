"""
GameRAG command line.

Commands:
  ingest  Index every NPC config in a directory
  chat    Ask one NPC a question, or talk to it interactively
  serve   Run the HTTP API
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from .domain.exceptions import GameRagError
from .domain.models import AskOptions
from .services.loader import load_agent
from .services.registry import AgentRegistry

logger = logging.getLogger(__name__)


# =============================================================================
# Command Handlers
# =============================================================================

async def _ingest(config_dir: str, clean: bool) -> int:
    registry = AgentRegistry.load_directory(config_dir)
    try:
        total = await registry.ensure_all(clean=clean)
    finally:
        await registry.aclose()
    print(f"Indexed {total} chunks")
    return 0


def cmd_ingest(args) -> int:
    """Handle the 'ingest' command."""
    return asyncio.run(_ingest(args.config_dir, args.clean))


async def _chat(npc_path: str, question: Optional[str], importance: Optional[float]) -> int:
    agent = load_agent(npc_path)
    options = AskOptions(importance=importance)
    try:
        await agent.ensure_index()

        if question:
            reply = await agent.ask(question, options)
            print(reply.text)
            return 0

        print(f"Talking to {agent.persona_id}. Empty line to quit.")
        while True:
            line = await asyncio.to_thread(input, "> ")
            if not line.strip():
                return 0
            async for token in agent.stream(line, options):
                print(token, end="", flush=True)
            print()
    finally:
        await agent.aclose()


def cmd_chat(args) -> int:
    """Handle the 'chat' command."""
    return asyncio.run(_chat(args.npc, args.question, args.importance))


def cmd_serve(args) -> int:
    """Handle the 'serve' command."""
    import uvicorn

    os.environ["GAMERAG_CONFIG_DIR"] = args.config
    uvicorn.run("gamerag.main:app", host=args.host, port=args.port)
    return 0


# =============================================================================
# Main Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='gamerag',
        description='GameRAG - retrieval-augmented NPC dialogue',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  gamerag ingest config/                           # Index every NPC in config/
  gamerag ingest config/ --clean                   # Re-embed all sources
  gamerag chat --npc config/blacksmith.yaml        # Interactive chat
  gamerag chat --npc config/blacksmith.yaml -q "Who rules here?"
  gamerag serve --config config/ --port 5280       # HTTP API
        """
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable debug logging'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    ingest_parser = subparsers.add_parser(
        'ingest',
        help='Index the lore sources of every NPC config in a directory'
    )
    ingest_parser.add_argument(
        'config_dir',
        help='Directory holding NPC *.yaml files'
    )
    ingest_parser.add_argument(
        '--clean',
        action='store_true',
        help='Ignore recorded hashes and re-embed every source'
    )

    chat_parser = subparsers.add_parser(
        'chat',
        help='Ask an NPC a question'
    )
    chat_parser.add_argument(
        '--npc', '-n',
        required=True,
        help='Path to the NPC YAML file'
    )
    chat_parser.add_argument(
        '--question', '-q',
        help='Ask a single question and exit'
    )
    chat_parser.add_argument(
        '--importance', '-i',
        type=float,
        help='Importance in [0, 1]; >= 0.5 routes to the cloud provider'
    )

    serve_parser = subparsers.add_parser(
        'serve',
        help='Run the HTTP API'
    )
    serve_parser.add_argument(
        '--config', '-c',
        default='config',
        help='Directory holding NPC *.yaml files'
    )
    serve_parser.add_argument(
        '--host',
        default='0.0.0.0',
        help='Bind address'
    )
    serve_parser.add_argument(
        '--port', '-p',
        type=int,
        default=5280,
        help='Port to listen on'
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments and run the selected command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not args.command:
        parser.print_help()
        return 1

    handlers = {
        'ingest': cmd_ingest,
        'chat': cmd_chat,
        'serve': cmd_serve,
    }
    try:
        return handlers[args.command](args)
    except GameRagError as e:
        logger.error(e.message)
        return 2


if __name__ == "__main__":
    sys.exit(main())
