"""
SKRepos — repository inventory sync.

Every machine scans its own disk, merges with a shared manifest,
clones what it is missing, and writes the merged manifest back.
No server, no lock. Run sync again and it converges.

A smilinTux Open Source Project.
"""

import os

__version__ = "0.1.0"
__author__ = "smilinTux"

SKREPOS_HOME = os.environ.get("SKREPOS_HOME", "~/.skrepos")
