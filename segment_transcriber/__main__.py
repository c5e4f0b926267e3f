"""Package entry point for ``python -m segment_transcriber``.

Delegates to the CLI's main() function.
"""

from segment_transcriber.cli import main

if __name__ == "__main__":
    main()
