"""Allow `python -m jarvis` to launch the assistant."""

from jarvis.main import run

run()
