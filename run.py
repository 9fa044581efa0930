#!/usr/bin/env python3
"""Tail the Event Hub partitions listed in a hubstream config file."""

import sys

from hubstream.main import main

if __name__ == "__main__":
    sys.exit(main())
