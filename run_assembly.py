#!/usr/bin/env python3
"""
Main CLI entrypoint for Reel Assembler.

This is a convenience wrapper that imports and runs the command-line assembly.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from reel_assembler.pipelines.run_assembly import main

if __name__ == "__main__":
    sys.exit(main())
