"""
Glancebar — Entry Point.

`python main.py` prints the statusline; `python main.py auth|config|setup`
manages accounts and settings. Installed, the same entry point is `glancebar`.
"""

import sys

from glancebar.cli import main

if __name__ == "__main__":
    sys.exit(main())
