"""Entry point: python main.py [--session ID] [--mode chat|agent]."""

from reflectAgent.cli import main

if __name__ == "__main__":
    main()
