"""Entry point for the configiso agent: build, serve, boot."""

import asyncio
import sys
from pathlib import Path

from configiso.agent.main import run_agent
from configiso.errors import ConfigError


def main():
    """Run the agent; an optional first argument names the config file."""
    config_file = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    try:
        asyncio.run(run_agent(config_file))
    except KeyboardInterrupt:
        print("\nAgent shutdown requested")
        sys.exit(0)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Agent error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
